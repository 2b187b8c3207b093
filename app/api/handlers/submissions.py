from __future__ import annotations

from app.api.handlers.deps import ApiDeps
from app.api.schemas import ChatMessageSchema, SubmissionListResponse, SubmissionRecordResponse
from app.domain.models import SubmissionSnapshot

COMPONENT_ID = "api.submissions"


async def get_submission_handler(
    *,
    submission_id: str,
    api_deps: ApiDeps,
) -> SubmissionRecordResponse | None:
    snapshot = await api_deps.repository.get_submission(submission_id=submission_id)
    if snapshot is None:
        return None
    return _to_response(snapshot)


async def list_problem_submissions_handler(
    *,
    problem_id: int,
    limit: int,
    api_deps: ApiDeps,
) -> SubmissionListResponse:
    items = await api_deps.repository.list_submissions(problem_id=problem_id, limit=limit)
    return SubmissionListResponse(items=[_to_response(item) for item in items])


def _to_response(snapshot: SubmissionSnapshot) -> SubmissionRecordResponse:
    return SubmissionRecordResponse(
        submission_id=snapshot.submission_id,
        problem_id=snapshot.problem_id,
        account_id=snapshot.account_id,
        submitted_code=dict(snapshot.submitted_code),
        status=snapshot.status,
        chat_history=[ChatMessageSchema(role=item.role, content=item.content) for item in snapshot.chat_history],
        analysis=snapshot.analysis,
        build_failed=snapshot.build_failed,
        build_logs=snapshot.build_logs,
        created_at=snapshot.created_at,
    )
