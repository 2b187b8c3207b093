from __future__ import annotations

from app.domain.contracts import ProgressStore
from app.domain.models import SubmissionProgressState

COMPONENT_ID = "domain.pipeline.progress"


def get_submission_progress(*, submission_id: str, progress: ProgressStore) -> SubmissionProgressState | None:
    """Current stage of an in-flight or recently finished submission, if still retained."""
    return progress.get(submission_id)


def is_terminal(state: SubmissionProgressState | None) -> bool:
    """True once a polling client can stop: the run reached done or recorded an error.

    A missing entry is not terminal; the run may not have published its first stage yet.
    """
    if state is None:
        return False
    return state.stage == "done" or state.error_message is not None
