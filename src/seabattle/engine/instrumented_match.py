"""Match controller with telemetry hooks."""

from __future__ import annotations

import time

from seabattle.engine.match import MatchController, Side, TurnReport
from seabattle.telemetry import get_logger, get_tracer, record_game_metric


class InstrumentedMatchController(MatchController):
    """Wraps MatchController with tracing, metrics, and logging."""

    def __init__(self, *args, **kwargs) -> None:
        self._logger = get_logger("seabattle.match")
        self._tracer = get_tracer("seabattle.match")
        self._match_span_cm = None
        self._match_span = None
        self._match_start_time: float | None = None
        self._match_id_counter = 0
        super().__init__(*args, **kwargs)

    def reset(self) -> None:
        self._start_match_span()
        with self._tracer.start_as_current_span("seabattle.match.reset") as span:
            super().reset()
            span.set_attribute("grid_size", self.settings.grid_size)
            span.set_attribute("ai_level", int(self.settings.ai_level))
            span.set_attribute("opponent_ships", len(self.opponent_board.ships))
            record_game_metric(
                "seabattle_match_reset_total",
                1,
                {"grid_size": self.settings.grid_size, "ai_level": int(self.settings.ai_level)},
            )

    def player_fire(self, x: int, y: int) -> TurnReport:
        with self._tracer.start_as_current_span("seabattle.match.turn") as span:
            span.set_attribute("match.id", self._match_id_counter)
            span.set_attribute("coord.x", x)
            span.set_attribute("coord.y", y)

            report = super().player_fire(x, y)

            span.set_attribute("accepted", report.accepted)
            if not report.accepted:
                record_game_metric("seabattle_rejected_shots_total", 1, {"side": Side.PLAYER.value})
                return report

            shots = [report.player_shot, *report.opponent_shots]
            for shot in shots:
                if shot is None:
                    continue
                record_game_metric(
                    "seabattle_shots_by_result_total",
                    1,
                    {"side": shot.side.value, "result": shot.outcome.value},
                )
            span.set_attribute("opponent_shots", len(report.opponent_shots))

            self._logger.info(
                "turn x=%d y=%d outcome=%s opponent_replies=%d",
                x,
                y,
                report.player_shot.outcome.value if report.player_shot else "-",
                len(report.opponent_shots),
            )

            if report.winner is not None:
                span.set_attribute("winner", report.winner.value)

        # The match span is only closed once the turn span has been detached.
        if report.winner is not None:
            self._finish_match(report.winner)
        return report

    def _start_match_span(self) -> None:
        self._close_match_span()
        self._match_start_time = time.perf_counter()
        self._match_id_counter += 1
        self._match_span_cm = self._tracer.start_as_current_span("seabattle.match")
        self._match_span = self._match_span_cm.__enter__()
        self._match_span.set_attribute("match.id", self._match_id_counter)

    def _finish_match(self, winner: Side) -> None:
        duration = (time.perf_counter() - self._match_start_time) if self._match_start_time else 0.0
        record_game_metric("seabattle_match_completed_total", 1, {"winner": winner.value})
        record_game_metric("seabattle_match_duration_seconds", duration, {"winner": winner.value})

        if self._match_span is not None:
            self._match_span.set_attribute("winner", winner.value)
            self._match_span.set_attribute("player_shots", self.stats.shots)
            self._match_span.set_attribute("duration_ms", duration * 1000)

        self._logger.info(
            "Match finished. Winner=%s player_shots=%d duration_s=%.3f",
            winner.value,
            self.stats.shots,
            duration,
        )
        self._close_match_span()

    def _close_match_span(self) -> None:
        if self._match_span_cm is not None:
            self._match_span_cm.__exit__(None, None, None)
            self._match_span_cm = None
            self._match_span = None
