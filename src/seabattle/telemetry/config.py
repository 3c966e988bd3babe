"""Telemetry configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from opentelemetry.sdk.resources import Resource
from pydantic import BaseModel, Field

from .logger import init_logging
from .metrics import init_metrics
from .tracer import init_tracing

_TRUTHY = {"1", "true", "yes", "on"}

_FLAG_ENV = {
    "enable_tracing": ("SEABATTLE_ENABLE_TRACING", "OTEL_TRACES_ENABLED"),
    "enable_metrics": ("SEABATTLE_ENABLE_METRICS", "OTEL_METRICS_ENABLED"),
    "enable_logging": ("SEABATTLE_ENABLE_LOGGING", "OTEL_LOGS_ENABLED"),
    "console_spans": ("SEABATTLE_CONSOLE_SPANS",),
}

_ENDPOINT_ENV = {
    "otlp_traces_endpoint": ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "v1/traces"),
    "otlp_metrics_endpoint": ("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT", "v1/metrics"),
    "otlp_logs_endpoint": ("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT", "v1/logs"),
}

_ENABLED_BY_ENDPOINT = {
    "otlp_traces_endpoint": "enable_tracing",
    "otlp_metrics_endpoint": "enable_metrics",
    "otlp_logs_endpoint": "enable_logging",
}


class TelemetryConfig(BaseModel):
    """Runtime configuration for logging and OpenTelemetry exporters."""

    enable_tracing: bool = False
    enable_metrics: bool = False
    enable_logging: bool = False
    console_spans: bool = False
    log_level: str = "INFO"
    otlp_traces_endpoint: str | None = None
    otlp_metrics_endpoint: str | None = None
    otlp_logs_endpoint: str | None = None
    service_name: str = "seabattle"
    service_namespace: str = "game"
    resource_attributes: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls, **overrides: Any) -> "TelemetryConfig":
        """Construct config from env vars (`SEABATTLE_*` + `OTEL_*`)."""

        data: dict[str, Any] = cls().model_dump()

        for field, env_names in _FLAG_ENV.items():
            for name in env_names:
                value = os.getenv(name)
                if value is not None:
                    data[field] = value.strip().lower() in _TRUTHY
                    break

        base_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        for field, (env_name, suffix) in _ENDPOINT_ENV.items():
            endpoint = os.getenv(env_name)
            if not endpoint and base_endpoint:
                endpoint = f"{base_endpoint.rstrip('/')}/{suffix}"
            if endpoint:
                data[field] = endpoint

        level = os.getenv("SEABATTLE_LOG_LEVEL")
        if level:
            data["log_level"] = level.strip().upper()

        service_name = os.getenv("OTEL_SERVICE_NAME")
        service_namespace = os.getenv("OTEL_SERVICE_NAMESPACE")
        if service_name:
            data["service_name"] = service_name
        if service_namespace:
            data["service_namespace"] = service_namespace

        resource_env = os.getenv("OTEL_RESOURCE_ATTRIBUTES")
        if resource_env:
            attrs = dict(data["resource_attributes"])
            for part in resource_env.split(","):
                if "=" not in part:
                    continue
                key, value = part.split("=", 1)
                attrs[key.strip()] = value.strip()
            data["resource_attributes"] = attrs

        data.update(overrides)

        # An exporter endpoint implies the matching signal is wanted.
        for endpoint_field, flag_field in _ENABLED_BY_ENDPOINT.items():
            if data.get(endpoint_field):
                data[flag_field] = True

        return cls(**data)

    def resource(self) -> Resource:
        """Build the OpenTelemetry resource shared by every signal."""
        attributes = {
            "service.name": self.service_name,
            "service.namespace": self.service_namespace,
        }
        attributes.update(self.resource_attributes)
        return Resource.create(attributes)


@lru_cache(maxsize=1)
def load_telemetry_config() -> TelemetryConfig:
    """Load and cache telemetry config from the environment."""

    return TelemetryConfig.from_env()


def init_telemetry(config: TelemetryConfig | None = None) -> TelemetryConfig:
    """Initialise telemetry subsystems according to the config flags."""

    resolved = config or load_telemetry_config()

    if resolved.enable_tracing:
        init_tracing(resolved)
    if resolved.enable_metrics:
        init_metrics(resolved)
    if resolved.enable_logging:
        init_logging(resolved)
    return resolved
