from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
import time

from app.domain.models import SubmissionProgressState, SubmissionStage


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InMemoryProgressStore:
    """Process-wide progress table with time-to-live retention.

    Entries are frozen values replaced as a whole on every update, so a
    concurrent reader sees either the previous or the next state. Expired
    entries are dropped lazily on read and swept on write.
    """

    clock: Callable[[], float] = time.monotonic
    now: Callable[[], datetime] = _utc_now
    entries: dict[str, SubmissionProgressState] = field(default_factory=dict)
    expires_at: dict[str, float] = field(default_factory=dict)

    def update(
        self,
        submission_id: str,
        stage: SubmissionStage,
        error_message: str | None = None,
        error_code: str | None = None,
    ) -> SubmissionProgressState:
        self.purge_expired()
        state = SubmissionProgressState(
            stage=SubmissionStage(stage),
            error_message=error_message,
            updated_at=self.now(),
            error_code=error_code,
        )
        # A reused submission id starts a new run; forget the old retention.
        self.expires_at.pop(submission_id, None)
        self.entries[submission_id] = state
        return state

    def get(self, submission_id: str) -> SubmissionProgressState | None:
        if self._is_expired(submission_id):
            self.clear(submission_id)
            return None
        return self.entries.get(submission_id)

    def clear(self, submission_id: str) -> None:
        self.entries.pop(submission_id, None)
        self.expires_at.pop(submission_id, None)

    def expire_after(self, submission_id: str, seconds: float) -> None:
        if submission_id not in self.entries:
            return
        self.expires_at[submission_id] = self.clock() + max(seconds, 0.0)

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [key for key, deadline in self.expires_at.items() if deadline <= now]
        for key in expired:
            self.clear(key)
        return len(expired)

    def _is_expired(self, submission_id: str) -> bool:
        deadline = self.expires_at.get(submission_id)
        return deadline is not None and deadline <= self.clock()
