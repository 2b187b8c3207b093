from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import Awaitable, Callable
import logging

from fastapi import FastAPI, HTTPException, Query

from app.api.handlers.deps import ApiDeps
from app.api.handlers.judge import submit_solution_handler
from app.api.handlers.progress import get_submission_progress_handler
from app.api.handlers.submissions import get_submission_handler, list_problem_submissions_handler
from app.api.schemas import (
    ErrorResponse,
    HealthResponse,
    ReadyResponse,
    SubmissionListResponse,
    SubmissionProgressResponse,
    SubmissionRecordResponse,
    SubmitSolutionRequest,
    SubmitSolutionResponse,
)
from app.domain.errors import AgentCallError, DomainError, ProblemNotFoundError

SERVICE_NAME = "submission-judge"


def build_app(
    run_id: str,
    api_deps: ApiDeps | None = None,
    on_startup: Callable[[], Awaitable[None]] | None = None,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    logger = logging.getLogger("runtime")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        del app
        logger.info(
            "service started",
            extra={"service": SERVICE_NAME, "run_id": run_id},
        )

        if on_startup is not None:
            await on_startup()

        yield

        if on_shutdown is not None:
            await on_shutdown()

        logger.info(
            "service stopped",
            extra={"service": SERVICE_NAME, "run_id": run_id},
        )

    app = FastAPI(title=SERVICE_NAME, version="0.1.0", lifespan=lifespan)

    def _require_deps() -> ApiDeps:
        if api_deps is None:
            raise HTTPException(status_code=503, detail="api dependencies are not available")
        return api_deps

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health() -> HealthResponse:
        mode = api_deps.settings.agent_client_mode if api_deps is not None else "unconfigured"
        return HealthResponse(status="ok", service=SERVICE_NAME, agent_client_mode=mode)

    @app.get("/ready", response_model=ReadyResponse, responses={503: {"model": ErrorResponse}}, tags=["System"])
    async def ready() -> ReadyResponse:
        deps = _require_deps()
        return ReadyResponse(
            status="ready",
            service=SERVICE_NAME,
            repository=type(deps.repository).__name__,
            pipeline_spec_version=deps.spec.spec_version,
        )

    @app.post(
        "/judge/submit",
        response_model=SubmitSolutionResponse,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
        tags=["Judge"],
    )
    async def submit_solution(request: SubmitSolutionRequest) -> SubmitSolutionResponse:
        deps = _require_deps()
        try:
            return await submit_solution_handler(request=request, api_deps=deps)
        except ProblemNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except AgentCallError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        except DomainError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get(
        "/judge/progress/{submission_id}",
        response_model=SubmissionProgressResponse,
        responses={503: {"model": ErrorResponse}},
        tags=["Judge"],
    )
    async def get_submission_progress(submission_id: str) -> SubmissionProgressResponse:
        deps = _require_deps()
        return await get_submission_progress_handler(submission_id=submission_id, api_deps=deps)

    @app.get(
        "/submissions/{submission_id}",
        response_model=SubmissionRecordResponse,
        responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
        tags=["Submissions"],
    )
    async def get_submission(submission_id: str) -> SubmissionRecordResponse:
        deps = _require_deps()
        record = await get_submission_handler(submission_id=submission_id, api_deps=deps)
        if record is None:
            raise HTTPException(status_code=404, detail="submission not found")
        return record

    @app.get(
        "/problems/{problem_id}/submissions",
        response_model=SubmissionListResponse,
        responses={503: {"model": ErrorResponse}},
        tags=["Submissions"],
    )
    async def list_problem_submissions(
        problem_id: int,
        limit: int = Query(default=50, ge=1, le=200),
    ) -> SubmissionListResponse:
        deps = _require_deps()
        return await list_problem_submissions_handler(problem_id=problem_id, limit=limit, api_deps=deps)

    return app
