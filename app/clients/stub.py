from __future__ import annotations

from dataclasses import dataclass, field
import json

from app.domain.dto import AgentHttpResponse, AnalysisRequest, DeployRequest, TestGenerationRequest
from app.domain.errors import AgentCallError
from app.domain.packaging import decode_build_context, read_tar_archive

AgentReply = AgentHttpResponse | Exception


def agent_envelope(text: str) -> str:
    """Serialize a message envelope the way the agents answer."""
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "id": "stub",
            "result": {
                "kind": "task",
                "id": "stub-task",
                "artifacts": [{"parts": [{"kind": "text", "text": text}]}],
                "status": {"state": "completed"},
            },
        }
    )


def fenced_json(payload: object) -> str:
    return f"```json\n{json.dumps(payload, indent=2)}\n```"


DEFAULT_GENERATED_TESTS: dict[str, str] = {
    "src/App.test.js": (
        "import { render, screen } from '@testing-library/react';\n"
        "import App from './App';\n\n"
        "test('renders the app', () => {\n"
        "  render(<App />);\n"
        "  expect(screen.getByRole('main')).toBeInTheDocument();\n"
        "});\n"
    ),
}

DEFAULT_ANALYSIS: dict[str, object] = {
    "codeQuality": {"score": 78, "rationale": "Readable components with small functions"},
    "functionality": {"score": 82, "rationale": "Core requirements are met"},
    "productionAbility": {"score": 70, "rationale": "Builds cleanly; error states are thin"},
    "chatHistory": {"score": 75, "rationale": "Focused prompts, reviewed assistant output"},
    "overallVerdict": "Solid solution with room for hardening.",
}


def _default_tests_reply() -> AgentReply:
    return AgentHttpResponse(status_code=200, body=agent_envelope(fenced_json(DEFAULT_GENERATED_TESTS)))


def _default_deploy_reply() -> AgentReply:
    return AgentHttpResponse(
        status_code=200,
        body=json.dumps(
            {
                "container_name": "stub-container",
                "container_id": "stub-container-id",
                "image_name": "stub-image",
                "image_id": "stub-image-id",
                "build_logs": "build ok",
                "build_failed": False,
            }
        ),
    )


def _default_analysis_reply() -> AgentReply:
    return AgentHttpResponse(status_code=200, body=agent_envelope(fenced_json(DEFAULT_ANALYSIS)))


@dataclass
class StubAgentClient:
    """Non-network agent client with scripted replies for local runs and tests."""

    tests_reply: AgentReply = field(default_factory=_default_tests_reply)
    deploy_reply: AgentReply = field(default_factory=_default_deploy_reply)
    analysis_reply: AgentReply = field(default_factory=_default_analysis_reply)
    test_requests: list[TestGenerationRequest] = field(default_factory=list)
    deploy_requests: list[DeployRequest] = field(default_factory=list)
    analysis_requests: list[AnalysisRequest] = field(default_factory=list)
    deployed_files: dict[str, str] = field(default_factory=dict)

    async def generate_tests(self, request: TestGenerationRequest) -> AgentHttpResponse:
        self.test_requests.append(request)
        return _answer(self.tests_reply, stage="tests", require_success=True)

    async def deploy(self, request: DeployRequest) -> AgentHttpResponse:
        self.deploy_requests.append(request)
        self.deployed_files = read_tar_archive(decode_build_context(request.base64_tar_file))
        return _answer(self.deploy_reply, stage="deploy", require_success=False)

    async def analyze(self, request: AnalysisRequest) -> AgentHttpResponse:
        self.analysis_requests.append(request)
        return _answer(self.analysis_reply, stage="analysis", require_success=True)


def _answer(reply: AgentReply, *, stage: str, require_success: bool) -> AgentHttpResponse:
    if isinstance(reply, Exception):
        raise reply
    if require_success and not reply.ok:
        raise AgentCallError(
            f"{stage} agent failed: {reply.status_code}",
            stage=stage,
            error_code="agent_http_error",
            status_code=reply.status_code,
        )
    return reply
