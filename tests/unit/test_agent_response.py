import json

import pytest

from app.clients.stub import DEFAULT_ANALYSIS, agent_envelope, fenced_json
from app.domain.agent_response import (
    decode_agent_payload,
    parse_agent_payload,
    parse_analyzer_result,
    parse_generated_tests,
    strip_code_fence,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "text",
    [
        '```json\n{"a": 1}\n```',
        '```JSON\n{"a": 1}\n```',
        '  \n```json{"a": 1}```  \n',
        '```\n{"a": 1}\n```',
        '{"a": 1}',
    ],
)
def test_strip_code_fence_tolerates_fence_variants(text: str) -> None:
    assert json.loads(strip_code_fence(text)) == {"a": 1}


@pytest.mark.unit
def test_fenced_json_in_text_part_is_decoded() -> None:
    body = agent_envelope(fenced_json({"src/App.test.js": "test('x', () => {});"}))

    assert parse_agent_payload(body) == {"src/App.test.js": "test('x', () => {});"}


@pytest.mark.unit
def test_first_text_part_is_used_when_other_parts_precede_it() -> None:
    body = json.dumps(
        {
            "result": {
                "artifacts": [
                    {"parts": [{"kind": "data", "data": {"ignored": True}}]},
                    {"parts": [{"kind": "text", "text": '{"ok": true}'}]},
                ]
            }
        }
    )

    assert parse_agent_payload(body) == {"ok": True}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("body", "reason"),
    [
        ("not json at all", "invalid_envelope_json"),
        (json.dumps({"result": {"artifacts": []}}), "missing_artifacts"),
        (json.dumps({"result": {}}), "missing_artifacts"),
        (json.dumps({"error": {"code": -32000}}), "missing_artifacts"),
        (json.dumps({"result": {"artifacts": [{"parts": [{"kind": "data", "data": {}}]}]}}), "missing_text_part"),
        (agent_envelope("```json\n{broken\n```"), "invalid_payload_json"),
    ],
)
def test_decode_failures_carry_reason_and_parse_returns_none(body: str, reason: str) -> None:
    decoded = decode_agent_payload(body)

    assert decoded.ok is False
    assert decoded.reason == reason
    assert parse_agent_payload(body) is None


@pytest.mark.unit
def test_generated_tests_keep_only_string_entries() -> None:
    body = agent_envelope(fenced_json({"src/a.test.js": "ok", "src/b.test.js": 42}))

    assert parse_generated_tests(body) == {"src/a.test.js": "ok"}


@pytest.mark.unit
def test_generated_tests_payload_must_be_object() -> None:
    assert parse_generated_tests(agent_envelope(fenced_json(["src/a.test.js"]))) is None


@pytest.mark.unit
def test_analyzer_result_is_validated() -> None:
    result = parse_analyzer_result(agent_envelope(fenced_json(DEFAULT_ANALYSIS)))

    assert result is not None
    assert result.functionality.score == 82
    assert result.overall_verdict == DEFAULT_ANALYSIS["overallVerdict"]


@pytest.mark.unit
def test_analyzer_result_out_of_range_score_is_rejected() -> None:
    payload = dict(DEFAULT_ANALYSIS)
    payload["codeQuality"] = {"score": 140, "rationale": "too generous"}

    assert parse_analyzer_result(agent_envelope(fenced_json(payload))) is None


@pytest.mark.unit
def test_analyzer_result_missing_field_is_rejected() -> None:
    payload = {key: value for key, value in DEFAULT_ANALYSIS.items() if key != "overallVerdict"}

    assert parse_analyzer_result(agent_envelope(fenced_json(payload))) is None
