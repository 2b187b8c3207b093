from __future__ import annotations

from dataclasses import dataclass, field

from app.domain.ids import new_submission_record_id
from app.domain.models import (
    AnalyzerResult,
    ChatMessage,
    NormalizedFileSet,
    ProblemSnapshot,
    SubmissionSnapshot,
    SubmissionStatus,
)


@dataclass
class InMemorySubmissionRepository:
    """Non-network repository with deterministic behavior for local runs and tests."""

    problems: dict[int, ProblemSnapshot] = field(default_factory=dict)
    submissions: dict[str, SubmissionSnapshot] = field(default_factory=dict)

    def seed_problem(
        self,
        *,
        problem_id: int,
        name: str,
        description: dict[str, object],
        category: str = "React",
        difficulty: str = "Medium",
    ) -> ProblemSnapshot:
        problem = ProblemSnapshot(
            problem_id=problem_id,
            name=name,
            category=category,
            difficulty=difficulty,
            description=dict(description),
        )
        self.problems[problem_id] = problem
        return problem

    async def get_problem(self, *, problem_id: int) -> ProblemSnapshot | None:
        return self.problems.get(problem_id)

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
    ) -> SubmissionSnapshot:
        snapshot = SubmissionSnapshot(
            submission_id=new_submission_record_id(),
            problem_id=problem_id,
            account_id=account_id,
            submitted_code=dict(submitted_code),
            status=status,
            chat_history=list(chat_history),
            analysis=analysis,
            build_failed=build_failed,
            build_logs=build_logs,
        )
        self.submissions[snapshot.submission_id] = snapshot
        return snapshot

    async def get_submission(self, *, submission_id: str) -> SubmissionSnapshot | None:
        return self.submissions.get(submission_id)

    async def list_submissions(self, *, problem_id: int, limit: int = 50) -> list[SubmissionSnapshot]:
        items = [item for item in self.submissions.values() if item.problem_id == problem_id]
        items.sort(key=lambda item: (item.created_at, item.submission_id), reverse=True)
        return items[:limit]
