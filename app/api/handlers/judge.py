from __future__ import annotations

from app.api.handlers.deps import ApiDeps
from app.api.schemas import SubmitSolutionRequest, SubmitSolutionResponse
from app.domain.dto import SubmitSolutionCommand
from app.domain.models import ChatMessage, SandboxFiles

COMPONENT_ID = "api.judge_submit"


async def submit_solution_handler(
    *,
    request: SubmitSolutionRequest,
    api_deps: ApiDeps,
) -> SubmitSolutionResponse:
    files: SandboxFiles = {
        path: value if isinstance(value, str) else value.model_dump(exclude_none=True)
        for path, value in request.files.items()
    }
    result = await api_deps.pipeline.submit(
        SubmitSolutionCommand(
            problem_id=request.problem_id,
            files=files,
            submission_id=request.submission_id,
            chat_history=[ChatMessage(role=item.role, content=item.content) for item in request.chat_history],
            account_id=request.account_id,
        )
    )
    return SubmitSolutionResponse(
        received_files=result.received_files,
        problem_id=result.problem_id,
        build_failed=result.build_failed,
        build_logs=result.build_logs,
        analysis=result.analysis,
        submission_record_id=result.submission_record_id,
    )
