from __future__ import annotations

import re

from fastapi.testclient import TestClient
import pytest

from app.api.http_app import build_app
from app.api.schemas import SUBMISSION_RECORD_ID_PATTERN
from app.domain.dto import AgentHttpResponse
from app.services.bootstrap import DEMO_PROBLEM, RuntimeContainer, build_runtime_container
from app.settings import PipelineSettings
from tests.integration.api_seed import submission_payload


def _container() -> RuntimeContainer:
    return build_runtime_container(PipelineSettings(agent_client_mode="stub"))


def _client(container: RuntimeContainer) -> TestClient:
    app = build_app(
        run_id="integration-api",
        api_deps=container.api_deps,
        on_startup=container.on_startup,
        on_shutdown=container.on_shutdown,
    )
    return TestClient(app)


@pytest.mark.integration
def test_system_endpoints_report_runtime_configuration() -> None:
    with _client(_container()) as client:
        health = client.get("/health")
        ready = client.get("/ready")

    assert health.status_code == 200
    assert health.json() == {"status": "ok", "service": "submission-judge", "agent_client_mode": "stub"}
    assert ready.status_code == 200
    assert ready.json()["repository"] == "InMemorySubmissionRepository"
    assert ready.json()["pipeline_spec_version"] == "pipeline-spec:v1"


@pytest.mark.integration
def test_ready_is_unavailable_without_dependencies() -> None:
    with TestClient(build_app(run_id="integration-api")) as client:
        assert client.get("/health").status_code == 200
        assert client.get("/ready").status_code == 503
        assert client.get("/judge/progress/anything").status_code == 503


@pytest.mark.integration
def test_submit_then_poll_progress_and_read_back_submission() -> None:
    with _client(_container()) as client:
        submit = client.post("/judge/submit", json=submission_payload(submission_id="ui-1"))
        assert submit.status_code == 200
        body = submit.json()
        assert body["receivedFiles"] == 3
        assert body["problemId"] == DEMO_PROBLEM["problem_id"]
        assert body["buildFailed"] is False
        assert body["buildLogs"] == "build ok"
        assert body["analysis"]["codeQuality"]["score"] == 78
        assert body["analysis"]["overallVerdict"]

        progress = client.get("/judge/progress/ui-1")
        assert progress.status_code == 200
        progress_body = progress.json()
        assert progress_body["submissionId"] == "ui-1"
        assert progress_body["progress"]["stage"] == "done"
        assert progress_body["progress"]["errorMessage"] is None
        assert progress_body["terminal"] is True

        record_id = body["submissionRecordId"]
        record = client.get(f"/submissions/{record_id}")
        assert record.status_code == 200
        record_body = record.json()
        assert record_body["id"] == record_id
        assert record_body["status"] == "success"
        assert record_body["accountId"] == "acct-42"
        assert "src/App.test.js" in record_body["submittedCode"]
        assert record_body["chatHistory"] == [{"role": "user", "content": "make it debounce"}]

        listing = client.get(f"/problems/{DEMO_PROBLEM['problem_id']}/submissions")
        assert listing.status_code == 200
        assert [item["id"] for item in listing.json()["items"]] == [record_id]

    assert re.match(SUBMISSION_RECORD_ID_PATTERN, record_id)


@pytest.mark.integration
def test_progress_before_first_stage_is_null_and_not_terminal() -> None:
    with _client(_container()) as client:
        response = client.get("/judge/progress/never-submitted")

    assert response.status_code == 200
    assert response.json()["progress"] is None
    assert response.json()["terminal"] is False


@pytest.mark.integration
def test_unknown_problem_returns_404_and_progress_shows_failure() -> None:
    with _client(_container()) as client:
        response = client.post("/judge/submit", json=submission_payload(submission_id="ui-2", problem_id=999))
        progress = client.get("/judge/progress/ui-2").json()["progress"]

    assert response.status_code == 404
    assert "999" in response.json()["detail"]
    assert progress["stage"] == "tests"
    assert progress["errorCode"] == "problem_not_found"


@pytest.mark.integration
def test_analyzer_failure_returns_502_and_persists_nothing() -> None:
    container = _container()
    container.agents.analysis_reply = AgentHttpResponse(status_code=500, body="analyzer exploded")

    with _client(container) as client:
        response = client.post("/judge/submit", json=submission_payload(submission_id="ui-3"))
        progress = client.get("/judge/progress/ui-3").json()["progress"]
        listing = client.get(f"/problems/{DEMO_PROBLEM['problem_id']}/submissions").json()

    assert response.status_code == 502
    assert progress["stage"] == "analysis"
    assert progress["errorMessage"]
    assert progress["errorCode"] == "agent_http_error"
    assert listing["items"] == []


@pytest.mark.integration
def test_deploy_outage_still_returns_analysis_with_failed_build() -> None:
    container = _container()
    container.agents.deploy_reply = ConnectionError("deploy agent offline")

    with _client(container) as client:
        response = client.post("/judge/submit", json=submission_payload(submission_id="ui-4"))
        record = client.get(f"/submissions/{response.json()['submissionRecordId']}").json()

    assert response.status_code == 200
    assert response.json()["buildFailed"] is True
    assert response.json()["buildLogs"] == ""
    assert response.json()["analysis"] is not None
    assert record["status"] == "failure"


@pytest.mark.integration
@pytest.mark.parametrize(
    "overrides",
    [
        {"files": {"App.js": "missing slash"}},
        {"problemId": 0},
        {"chatHistory": [{"role": "system", "content": "not allowed"}]},
        {"files": {"/App.js": {"hidden": True}}},
    ],
)
def test_invalid_submit_payloads_are_rejected(overrides: dict[str, object]) -> None:
    payload = submission_payload(submission_id="ui-5")
    payload.update(overrides)

    with _client(_container()) as client:
        response = client.post("/judge/submit", json=payload)

    assert response.status_code == 422


@pytest.mark.integration
def test_unknown_submission_record_returns_404() -> None:
    with _client(_container()) as client:
        response = client.get("/submissions/sub_01ARZ3NDEKTSV4RRFFQ69G5FAV")

    assert response.status_code == 404


@pytest.mark.integration
def test_listing_limit_is_bounded() -> None:
    with _client(_container()) as client:
        assert client.get("/problems/1/submissions?limit=0").status_code == 422
        assert client.get("/problems/1/submissions?limit=201").status_code == 422
        assert client.get("/problems/1/submissions?limit=5").json() == {"items": []}


@pytest.mark.integration
def test_empty_file_map_is_accepted() -> None:
    payload = submission_payload(submission_id="ui-6")
    payload["files"] = {}

    with _client(_container()) as client:
        response = client.post("/judge/submit", json=payload)

    assert response.status_code == 200
    assert response.json()["receivedFiles"] == 0
