from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

# Canonical error vocabulary for all pipeline stages.
ErrorCode = Literal[
    "validation_error",
    "problem_not_found",
    "agent_http_error",
    "agent_unavailable",
    "agent_timeout",
    "packaging_failed",
    "persistence_failed",
    "internal_error",
]

# Allowed values for the progress entry error_code.
CANONICAL_ERROR_CODES: tuple[ErrorCode, ...] = (
    "validation_error",
    "problem_not_found",
    "agent_http_error",
    "agent_unavailable",
    "agent_timeout",
    "packaging_failed",
    "persistence_failed",
    "internal_error",
)

# Stage-specific allowlist. If a stage emits a code outside this map,
# it is normalized to internal_error by resolve_stage_error().
STAGE_ERROR_MAP: Mapping[str, frozenset[ErrorCode]] = {
    "tests": frozenset(
        {
            "validation_error",
            "problem_not_found",
            "agent_http_error",
            "agent_unavailable",
            "agent_timeout",
            "internal_error",
        }
    ),
    "deploy": frozenset(
        {
            "packaging_failed",
            "internal_error",
        }
    ),
    "analysis": frozenset(
        {
            "agent_http_error",
            "agent_unavailable",
            "agent_timeout",
            "persistence_failed",
            "internal_error",
        }
    ),
    "done": frozenset({"internal_error"}),
}


def is_canonical_error_code(code: str) -> bool:
    return code in CANONICAL_ERROR_CODES


def resolve_stage_error(*, stage: str, code: str) -> ErrorCode:
    allowed = STAGE_ERROR_MAP.get(stage, frozenset({"internal_error"}))
    if code in allowed and is_canonical_error_code(code):
        return code  # type: ignore[return-value]
    # Keep progress payloads stable even if a stage raised an unexpected code.
    return "internal_error"
