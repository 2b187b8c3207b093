from __future__ import annotations

from app.api.handlers.deps import ApiDeps
from app.api.schemas import ProgressStateSchema, SubmissionProgressResponse
from app.domain.use_cases.progress import get_submission_progress, is_terminal

COMPONENT_ID = "api.judge_progress"


async def get_submission_progress_handler(
    *,
    submission_id: str,
    api_deps: ApiDeps,
) -> SubmissionProgressResponse:
    state = get_submission_progress(submission_id=submission_id, progress=api_deps.progress)
    progress = None
    if state is not None:
        progress = ProgressStateSchema(
            stage=state.stage,
            error_message=state.error_message,
            error_code=state.error_code,
            updated_at=state.updated_at,
        )
    return SubmissionProgressResponse(
        submission_id=submission_id,
        progress=progress,
        terminal=is_terminal(state),
    )
