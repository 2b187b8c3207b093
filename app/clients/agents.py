from __future__ import annotations

from dataclasses import dataclass
import logging
import time
import uuid

import httpx

from app.domain.dto import AgentHttpResponse, AnalysisRequest, DeployRequest, TestGenerationRequest
from app.domain.errors import AgentCallError
from app.domain.pipeline_spec import PipelineSpec
from app.settings import PipelineSettings

logger = logging.getLogger("agents")


def build_message_envelope(*, instruction: str, data: dict[str, object]) -> dict[str, object]:
    """Wrap an instruction and its data payload in a JSON-RPC message/send call."""
    message_id = str(uuid.uuid4())
    return {
        "jsonrpc": "2.0",
        "id": message_id,
        "method": "message/send",
        "params": {
            "message": {
                "kind": "message",
                "messageId": message_id,
                "role": "user",
                "parts": [
                    {"kind": "text", "text": instruction},
                    {"kind": "data", "data": data},
                ],
            },
        },
    }


@dataclass
class HttpAgentClient:
    settings: PipelineSettings
    spec: PipelineSpec
    transport: httpx.AsyncBaseTransport | None = None

    async def generate_tests(self, request: TestGenerationRequest) -> AgentHttpResponse:
        envelope = build_message_envelope(instruction=self.spec.agents.tests, data=request.payload())
        response = await self._post(
            path="/test",
            stage="tests",
            json_body=envelope,
            timeout=self.settings.tests_timeout_seconds,
        )
        return _require_success(response, stage="tests", agent="test-generation")

    async def deploy(self, request: DeployRequest) -> AgentHttpResponse:
        return await self._post(
            path="/deploy",
            stage="deploy",
            json_body=request.payload(),
            timeout=self.settings.deploy_timeout_seconds,
        )

    async def analyze(self, request: AnalysisRequest) -> AgentHttpResponse:
        envelope = build_message_envelope(instruction=self.spec.agents.analysis, data=request.payload())
        response = await self._post(
            path="/analyze",
            stage="analysis",
            json_body=envelope,
            timeout=self.settings.analysis_timeout_seconds,
        )
        return _require_success(response, stage="analysis", agent="analyzer")

    async def _post(
        self,
        *,
        path: str,
        stage: str,
        json_body: dict[str, object],
        timeout: float,
    ) -> AgentHttpResponse:
        url = f"{self.settings.agent_server_url}{path}"
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=timeout) as client:
                response = await client.post(url, json=json_body)
        except httpx.TimeoutException as exc:
            raise AgentCallError(
                f"{stage} agent timed out after {timeout:g}s",
                stage=stage,
                error_code="agent_timeout",
            ) from exc
        except httpx.HTTPError as exc:
            raise AgentCallError(
                f"{stage} agent is unavailable: {exc}",
                stage=stage,
                error_code="agent_unavailable",
            ) from exc

        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "agent call finished",
            extra={"stage": stage, "status_code": response.status_code, "latency_ms": latency_ms},
        )
        return AgentHttpResponse(status_code=response.status_code, body=response.text)


def _require_success(response: AgentHttpResponse, *, stage: str, agent: str) -> AgentHttpResponse:
    if response.ok:
        return response
    raise AgentCallError(
        f"{agent} agent failed: {response.status_code}",
        stage=stage,
        error_code="agent_http_error",
        status_code=response.status_code,
    )
