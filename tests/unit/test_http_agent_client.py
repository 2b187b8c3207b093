from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from app.clients.agents import HttpAgentClient, build_message_envelope
from app.domain.dto import AnalysisRequest, DeployRequest, TestGenerationRequest
from app.domain.errors import AgentCallError
from app.domain.models import ChatMessage
from app.domain.pipeline_spec import load_pipeline_spec
from app.settings import PipelineSettings

AGENT_URL = "http://agents.test"


def _client(handler) -> HttpAgentClient:
    return HttpAgentClient(
        settings=PipelineSettings(agent_server_url=AGENT_URL),
        spec=load_pipeline_spec(),
        transport=httpx.MockTransport(handler),
    )


def _tests_request() -> TestGenerationRequest:
    return TestGenerationRequest(
        problem_id=3,
        problem_description={"longDescription": "todo list"},
        files={"src/App.js": "app"},
    )


def _analysis_request() -> AnalysisRequest:
    return AnalysisRequest(
        problem_id=3,
        problem_description={"longDescription": "todo list"},
        files={"src/App.js": "app"},
        build_logs="",
        chat_history=[ChatMessage(role="user", content="hi")],
    )


@pytest.mark.unit
def test_envelope_is_json_rpc_message_send_with_text_and_data_parts() -> None:
    envelope = build_message_envelope(instruction="write tests", data={"problemId": 1})

    assert envelope["jsonrpc"] == "2.0"
    assert envelope["method"] == "message/send"
    message = envelope["params"]["message"]
    assert message["messageId"] == envelope["id"]
    assert message["parts"] == [
        {"kind": "text", "text": "write tests"},
        {"kind": "data", "data": {"problemId": 1}},
    ]


@pytest.mark.unit
def test_generate_tests_posts_envelope_to_test_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text='{"result": {}}')

    response = asyncio.run(_client(handler).generate_tests(_tests_request()))

    assert response.status_code == 200
    assert response.body == '{"result": {}}'
    assert str(seen[0].url) == f"{AGENT_URL}/test"
    body = json.loads(seen[0].content)
    data_part = body["params"]["message"]["parts"][1]["data"]
    assert data_part == {
        "problemId": 3,
        "problemDescription": {"longDescription": "todo list"},
        "files": {"src/App.js": "app"},
    }


@pytest.mark.unit
def test_analyze_payload_includes_build_logs_and_chat_history() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="{}")

    asyncio.run(_client(handler).analyze(_analysis_request()))

    assert seen[0].url.path == "/analyze"
    data_part = json.loads(seen[0].content)["params"]["message"]["parts"][1]["data"]
    assert data_part["buildLogs"] == ""
    assert data_part["chatHistory"] == [{"role": "user", "content": "hi"}]


@pytest.mark.unit
def test_deploy_posts_plain_body_and_returns_non_2xx_responses() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(500, json={"build_failed": True, "build_logs": "boom"})

    response = asyncio.run(_client(handler).deploy(DeployRequest(docker_file="FROM node", base64_tar_file="abc")))

    assert response.status_code == 500
    assert response.ok is False
    assert seen[0].url.path == "/deploy"
    assert json.loads(seen[0].content) == {"docker_file": "FROM node", "base64TarFile": "abc"}


@pytest.mark.unit
@pytest.mark.parametrize("call", ["generate_tests", "analyze"])
def test_non_2xx_from_test_or_analyzer_agent_raises(call: str) -> None:
    client = _client(lambda request: httpx.Response(502, text="bad gateway"))
    request = _tests_request() if call == "generate_tests" else _analysis_request()

    with pytest.raises(AgentCallError) as exc_info:
        asyncio.run(getattr(client, call)(request))

    assert exc_info.value.error_code == "agent_http_error"
    assert exc_info.value.status_code == 502


@pytest.mark.unit
def test_timeout_maps_to_agent_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(AgentCallError) as exc_info:
        asyncio.run(_client(handler).analyze(_analysis_request()))

    assert exc_info.value.error_code == "agent_timeout"
    assert exc_info.value.stage == "analysis"


@pytest.mark.unit
def test_connection_error_maps_to_agent_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AgentCallError) as exc_info:
        asyncio.run(_client(handler).deploy(DeployRequest(docker_file="FROM node", base64_tar_file="abc")))

    assert exc_info.value.error_code == "agent_unavailable"
    assert exc_info.value.stage == "deploy"
