from __future__ import annotations

from dataclasses import dataclass
import os

from app.domain.pipeline_spec import DEFAULT_PIPELINE_SPEC_PATH

DEFAULT_AGENT_SERVER_URL = "http://127.0.0.1:8080"
SUPPORTED_AGENT_CLIENT_MODES = ("http", "stub")


@dataclass(frozen=True)
class PipelineSettings:
    agent_server_url: str = DEFAULT_AGENT_SERVER_URL
    agent_client_mode: str = "http"
    tests_timeout_seconds: float = 120.0
    deploy_timeout_seconds: float = 600.0
    analysis_timeout_seconds: float = 180.0
    progress_retention_seconds: float = 300.0
    pipeline_spec_path: str = str(DEFAULT_PIPELINE_SPEC_PATH)
    database_url: str | None = None


def pipeline_settings_from_env() -> PipelineSettings:
    defaults = PipelineSettings()
    agent_client_mode = os.getenv("AGENT_CLIENT_MODE", defaults.agent_client_mode)
    if agent_client_mode not in SUPPORTED_AGENT_CLIENT_MODES:
        supported = ", ".join(SUPPORTED_AGENT_CLIENT_MODES)
        raise ValueError(f"Unsupported AGENT_CLIENT_MODE '{agent_client_mode}'. Supported modes: {supported}")

    return PipelineSettings(
        agent_server_url=os.getenv("AGENT_SERVER_URL", defaults.agent_server_url).rstrip("/"),
        agent_client_mode=agent_client_mode,
        tests_timeout_seconds=_env_float("AGENT_TESTS_TIMEOUT_SECONDS", defaults.tests_timeout_seconds),
        deploy_timeout_seconds=_env_float("AGENT_DEPLOY_TIMEOUT_SECONDS", defaults.deploy_timeout_seconds),
        analysis_timeout_seconds=_env_float("AGENT_ANALYSIS_TIMEOUT_SECONDS", defaults.analysis_timeout_seconds),
        progress_retention_seconds=_env_float("PROGRESS_RETENTION_SECONDS", defaults.progress_retention_seconds),
        pipeline_spec_path=os.getenv("PIPELINE_SPEC_PATH", defaults.pipeline_spec_path),
        database_url=os.getenv("DATABASE_URL") or None,
    )


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default

    try:
        parsed = float(value)
    except ValueError:
        return default

    return parsed if parsed > 0 else default
