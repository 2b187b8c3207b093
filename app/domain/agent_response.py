"""Decoding of JSON payloads that agents return inside a message envelope.

Agents answer with ``{"result": {"artifacts": [{"parts": [{"kind": "text", "text": ...}]}]}}``
where the text part holds the real payload, usually wrapped in a markdown code
fence. Malformed output is an expected case, so decoding returns a result value
instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Literal

from pydantic import ValidationError

from app.domain.models import AnalyzerResult

logger = logging.getLogger("agents")

DecodeFailureReason = Literal[
    "invalid_envelope_json",
    "missing_artifacts",
    "missing_text_part",
    "invalid_payload_json",
]

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"```$")


@dataclass(frozen=True)
class AgentPayloadDecode:
    ok: bool
    payload: object | None = None
    reason: DecodeFailureReason | None = None
    detail: str = ""

    @classmethod
    def success(cls, payload: object) -> AgentPayloadDecode:
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, reason: DecodeFailureReason, detail: str = "") -> AgentPayloadDecode:
        return cls(ok=False, reason=reason, detail=detail)


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    stripped = _LEADING_FENCE_RE.sub("", stripped, count=1)
    stripped = _TRAILING_FENCE_RE.sub("", stripped.rstrip(), count=1)
    return stripped.strip()


def extract_text_part(envelope: object) -> str | None:
    if not isinstance(envelope, dict):
        return None
    result = envelope.get("result")
    if not isinstance(result, dict):
        return None
    artifacts = result.get("artifacts")
    if not isinstance(artifacts, list):
        return None
    for artifact in artifacts:
        if not isinstance(artifact, dict):
            continue
        parts = artifact.get("parts")
        if not isinstance(parts, list):
            continue
        for part in parts:
            if isinstance(part, dict) and part.get("kind") == "text" and isinstance(part.get("text"), str):
                return part["text"]
    return None


def decode_agent_payload(raw_body: str) -> AgentPayloadDecode:
    try:
        envelope = json.loads(raw_body)
    except json.JSONDecodeError as exc:
        return AgentPayloadDecode.failure("invalid_envelope_json", str(exc))

    result = envelope.get("result") if isinstance(envelope, dict) else None
    artifacts = result.get("artifacts") if isinstance(result, dict) else None
    if not isinstance(artifacts, list) or not artifacts:
        return AgentPayloadDecode.failure("missing_artifacts")

    text = extract_text_part(envelope)
    if text is None:
        return AgentPayloadDecode.failure("missing_text_part")

    try:
        payload = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as exc:
        return AgentPayloadDecode.failure("invalid_payload_json", str(exc))
    return AgentPayloadDecode.success(payload)


def parse_agent_payload(raw_body: str, *, agent: str = "agent") -> object | None:
    decoded = decode_agent_payload(raw_body)
    if decoded.ok:
        return decoded.payload
    logger.warning(
        "agent payload could not be decoded",
        extra={"agent": agent, "reason": decoded.reason, "detail": decoded.detail},
    )
    return None


def parse_generated_tests(raw_body: str) -> dict[str, str] | None:
    payload = parse_agent_payload(raw_body, agent="tests")
    if payload is None:
        return None
    if not isinstance(payload, dict):
        logger.warning("generated tests payload is not an object", extra={"agent": "tests"})
        return None
    tests: dict[str, str] = {}
    for path, content in payload.items():
        if isinstance(path, str) and path and isinstance(content, str):
            tests[path] = content
        else:
            logger.warning("dropping malformed generated test entry", extra={"agent": "tests", "detail": str(path)})
    return tests


def parse_analyzer_result(raw_body: str) -> AnalyzerResult | None:
    payload = parse_agent_payload(raw_body, agent="analysis")
    if payload is None:
        return None
    try:
        return AnalyzerResult.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "analyzer payload failed validation",
            extra={"agent": "analysis", "reason": "schema_validation_failed", "detail": str(exc)},
        )
        return None
