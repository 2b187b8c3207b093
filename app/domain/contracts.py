from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.domain.dto import AgentHttpResponse, AnalysisRequest, DeployRequest, TestGenerationRequest
from app.domain.models import (
    AnalyzerResult,
    ChatMessage,
    NormalizedFileSet,
    ProblemSnapshot,
    SubmissionProgressState,
    SubmissionSnapshot,
    SubmissionStage,
    SubmissionStatus,
)


@runtime_checkable
class SubmissionRepository(Protocol):
    """Read access to problems and write-once storage of evaluated submissions."""

    async def get_problem(self, *, problem_id: int) -> ProblemSnapshot | None: ...

    async def persist_submission(
        self,
        *,
        problem_id: int,
        account_id: str | None,
        submitted_code: NormalizedFileSet,
        status: SubmissionStatus,
        chat_history: list[ChatMessage],
        analysis: AnalyzerResult | None,
        build_failed: bool,
        build_logs: str,
    ) -> SubmissionSnapshot: ...

    async def get_submission(self, *, submission_id: str) -> SubmissionSnapshot | None: ...

    async def list_submissions(self, *, problem_id: int, limit: int = 50) -> list[SubmissionSnapshot]: ...


@runtime_checkable
class ProgressStore(Protocol):
    """Cross-request progress channel keyed by the client submission id.

    One writer per key (the running pipeline), any number of readers. Each
    write replaces the whole entry, so readers never observe a partial state.
    """

    def update(
        self,
        submission_id: str,
        stage: SubmissionStage,
        error_message: str | None = None,
        error_code: str | None = None,
    ) -> SubmissionProgressState: ...

    def get(self, submission_id: str) -> SubmissionProgressState | None: ...

    def clear(self, submission_id: str) -> None: ...

    def expire_after(self, submission_id: str, seconds: float) -> None: ...


@runtime_checkable
class AgentClient(Protocol):
    """Calling contract of the external test, deploy and analyzer agents.

    Every call raises AgentCallError on transport failure or timeout. Test and
    analyzer calls also raise it on a non-2xx status; deploy returns whatever
    HTTP answer it got and leaves interpretation to the pipeline.
    """

    async def generate_tests(self, request: TestGenerationRequest) -> AgentHttpResponse: ...

    async def deploy(self, request: DeployRequest) -> AgentHttpResponse: ...

    async def analyze(self, request: AnalysisRequest) -> AgentHttpResponse: ...
