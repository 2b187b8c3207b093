from __future__ import annotations

from dataclasses import dataclass
import importlib
import json
from typing import Any

from app.domain.errors import DomainInvariantError
from app.domain.ids import new_submission_record_id
from app.domain.models import (
    AnalyzerResult,
    ChatMessage,
    NormalizedFileSet,
    ProblemSnapshot,
    SubmissionSnapshot,
    SubmissionStatus,
)
from app.repositories.sql_loader import load_sql

try:
    asyncpg_module = importlib.import_module("asyncpg")
except ModuleNotFoundError:  # pragma: no cover
    asyncpg_module = None  # type: ignore[assignment]


SQL_GET_PROBLEM = load_sql("get_problem.sql")
SQL_INSERT_SUBMISSION = load_sql("insert_submission.sql")
SQL_GET_SUBMISSION = load_sql("get_submission.sql")
SQL_LIST_SUBMISSIONS = load_sql("list_submissions.sql")


def _is_unique_violation(exc: Exception) -> bool:
    return getattr(exc, "sqlstate", None) == "23505"


@dataclass
class AsyncpgPoolManager:
    dsn: str
    pool: Any | None = None

    async def startup(self) -> None:
        if asyncpg_module is None:  # pragma: no cover
            raise RuntimeError("asyncpg is required for postgres repository mode")

        async def _init_connection(conn: Any) -> None:
            await conn.set_type_codec(
                "json",
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )
            await conn.set_type_codec(
                "jsonb",
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )

        self.pool = await asyncpg_module.create_pool(
            dsn=self.dsn,
            min_size=1,
            max_size=5,
            init=_init_connection,
        )

    async def shutdown(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None


@dataclass
class PostgresSubmissionRepository:
    pool_manager: AsyncpgPoolManager

    def _pool(self) -> Any:
        if self.pool_manager.pool is None:
            raise RuntimeError("postgres pool is not initialized")
        return self.pool_manager.pool

    async def get_problem(self, *, problem_id: int) -> ProblemSnapshot | None:
        pool = self._pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(SQL_GET_PROBLEM, problem_id)
        if row is None:
            return None
        return ProblemSnapshot(
            problem_id=row["id"],
            name=row["name"],
            category=row["category"],
            difficulty=row["difficulty"],
            description=dict(row["description"] or {}),
        )

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
        pool = self._pool()
        analysis_json = analysis.model_dump(mode="json", by_alias=True) if analysis is not None else None
        async with pool.acquire() as conn:
            for _ in range(5):
                try:
                    row = await conn.fetchrow(
                        SQL_INSERT_SUBMISSION,
                        new_submission_record_id(),
                        problem_id,
                        account_id,
                        dict(submitted_code),
                        str(status),
                        [message.as_json() for message in chat_history],
                        analysis_json,
                        build_failed,
                        build_logs,
                    )
                except Exception as exc:
                    if _is_unique_violation(exc):
                        continue
                    raise
                if row is None:
                    raise DomainInvariantError("failed to persist submission")
                return _snapshot_from_row(row)
        raise DomainInvariantError("failed to allocate unique submission public id")

    async def get_submission(self, *, submission_id: str) -> SubmissionSnapshot | None:
        pool = self._pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(SQL_GET_SUBMISSION, submission_id)
        if row is None:
            return None
        return _snapshot_from_row(row)

    async def list_submissions(self, *, problem_id: int, limit: int = 50) -> list[SubmissionSnapshot]:
        pool = self._pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(SQL_LIST_SUBMISSIONS, problem_id, limit)
        return [_snapshot_from_row(row) for row in rows]


def _snapshot_from_row(row: Any) -> SubmissionSnapshot:
    analysis_raw = row["analysis"]
    return SubmissionSnapshot(
        submission_id=row["public_id"],
        problem_id=row["problem_id"],
        account_id=row["account_id"],
        submitted_code=dict(row["submitted_code"] or {}),
        status=SubmissionStatus(row["status"]),
        chat_history=[
            ChatMessage(role=item["role"], content=item["content"])
            for item in (row["chat_history"] or [])
        ],
        analysis=AnalyzerResult.model_validate(analysis_raw) if analysis_raw is not None else None,
        build_failed=row["build_failed"],
        build_logs=row["build_logs"],
        created_at=row["created_at"],
    )
