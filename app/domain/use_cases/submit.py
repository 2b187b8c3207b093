from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import json
import logging
from typing import TypeVar

from app.domain.agent_response import parse_analyzer_result, parse_generated_tests
from app.domain.contracts import AgentClient, ProgressStore, SubmissionRepository
from app.domain.dto import (
    AgentHttpResponse,
    AnalysisRequest,
    DeployRequest,
    SubmissionResult,
    SubmitSolutionCommand,
    TestGenerationRequest,
)
from app.domain.error_taxonomy import ErrorCode, resolve_stage_error
from app.domain.errors import (
    AgentCallError,
    DomainInvariantError,
    DomainValidationError,
    PackagingError,
    ProblemNotFoundError,
    SubmissionPersistenceError,
)
from app.domain.lifecycle import is_allowed_transition, stage_policy
from app.domain.models import (
    AnalyzerResult,
    DeployOutcome,
    DeployResponse,
    NormalizedFileSet,
    ProblemSnapshot,
    SubmissionSnapshot,
    SubmissionStage,
    SubmissionStatus,
)
from app.domain.packaging import normalize_sandbox_files, package_build_context
from app.domain.pipeline_spec import PipelineSpec

COMPONENT_ID = "domain.pipeline.submit"
DEFAULT_FAILURE_MESSAGE = "Submission failed"
logger = logging.getLogger("pipeline")

T = TypeVar("T")


@dataclass
class _PipelineRun:
    submission_id: str
    stage: SubmissionStage = SubmissionStage.TESTS


@dataclass
class SubmissionPipeline:
    """Runs one submission through tests -> deploy -> analysis -> done.

    Stages run strictly in order because each consumes the previous stage's
    output. Progress is published to the store at every transition; on a fatal
    error the store keeps the failing stage with a message and the error is
    re-raised. Either way the progress entry expires after the retention delay.
    """

    repository: SubmissionRepository
    agents: AgentClient
    progress: ProgressStore
    spec: PipelineSpec
    progress_retention_seconds: float = 300.0

    async def submit(self, cmd: SubmitSolutionCommand) -> SubmissionResult:
        run = _PipelineRun(submission_id=cmd.submission_id)
        self.progress.update(cmd.submission_id, SubmissionStage.TESTS)
        logger.info(
            "submission started",
            extra={"submission_id": cmd.submission_id, "stage": run.stage, "problem_id": cmd.problem_id},
        )
        try:
            files = normalize_sandbox_files(cmd.files, spec=self.spec)
            problem = await self._load_problem(cmd.problem_id)
            files = await self._generate_tests(run, problem=problem, files=files)

            self._advance(run, SubmissionStage.DEPLOY)
            deploy = await self._deploy(run, files=files)

            self._advance(run, SubmissionStage.ANALYSIS)
            analysis = await self._analyze(
                run,
                problem=problem,
                files=files,
                build_logs=deploy.build_logs,
                cmd=cmd,
            )

            record = await self._persist(cmd, files=files, deploy=deploy, analysis=analysis)
            self._advance(run, SubmissionStage.DONE)
        except Exception as exc:
            self._record_failure(run, exc)
            raise
        finally:
            self.progress.expire_after(cmd.submission_id, self.progress_retention_seconds)

        logger.info(
            "submission finished",
            extra={
                "submission_id": cmd.submission_id,
                "stage": run.stage,
                "status": record.status,
                "submission_record_id": record.submission_id,
            },
        )
        return SubmissionResult(
            received_files=len(cmd.files),
            problem_id=cmd.problem_id,
            build_failed=deploy.build_failed,
            build_logs=deploy.build_logs,
            analysis=analysis,
            submission_record_id=record.submission_id,
        )

    async def _load_problem(self, problem_id: int) -> ProblemSnapshot:
        problem = await self.repository.get_problem(problem_id=problem_id)
        if problem is None:
            raise ProblemNotFoundError(problem_id)
        return problem

    async def _generate_tests(
        self,
        run: _PipelineRun,
        *,
        problem: ProblemSnapshot,
        files: NormalizedFileSet,
    ) -> NormalizedFileSet:
        request = TestGenerationRequest(
            problem_id=problem.problem_id,
            problem_description=problem.description,
            files=files,
        )
        response = await self._guarded(run, "tests.call", lambda: self.agents.generate_tests(request), default=None)

        async def _decode() -> dict[str, str]:
            if response is None:
                raise DomainValidationError("test-generation agent returned no response")
            generated = parse_generated_tests(response.body)
            if generated is None:
                raise DomainValidationError("generated tests payload is unavailable")
            return generated

        generated_tests = await self._guarded(run, "tests.parse", _decode, default={})
        merged = dict(files)
        merged.update(generated_tests)
        logger.info(
            "tests stage finished",
            extra={"submission_id": run.submission_id, "stage": run.stage, "generated_tests": len(generated_tests)},
        )
        return merged

    async def _deploy(self, run: _PipelineRun, *, files: NormalizedFileSet) -> DeployOutcome:
        try:
            build_context = await package_build_context(files)
        except Exception as exc:
            raise PackagingError(f"failed to package build context: {exc}") from exc

        request = DeployRequest(docker_file=self.spec.docker_file, base64_tar_file=build_context)

        async def _call() -> DeployOutcome:
            response = await self.agents.deploy(request)
            return DeployOutcome(fetch_ok=response.ok, response=_parse_deploy_response(response))

        outcome = await self._guarded(run, "deploy.call", _call, default=DeployOutcome(fetch_ok=False))
        logger.info(
            "deploy stage finished",
            extra={
                "submission_id": run.submission_id,
                "stage": run.stage,
                "deploy_fetch_ok": outcome.fetch_ok,
                "build_failed": outcome.build_failed,
            },
        )
        return outcome

    async def _analyze(
        self,
        run: _PipelineRun,
        *,
        problem: ProblemSnapshot,
        files: NormalizedFileSet,
        build_logs: str,
        cmd: SubmitSolutionCommand,
    ) -> AnalyzerResult | None:
        request = AnalysisRequest(
            problem_id=problem.problem_id,
            problem_description=problem.description,
            files=files,
            build_logs=build_logs,
            chat_history=list(cmd.chat_history),
        )
        response = await self._guarded(run, "analysis.call", lambda: self.agents.analyze(request), default=None)

        async def _decode() -> AnalyzerResult | None:
            if response is None:
                raise DomainValidationError("analyzer agent returned no response")
            analysis = parse_analyzer_result(response.body)
            if analysis is None:
                raise DomainValidationError("analyzer payload is unavailable")
            return analysis

        return await self._guarded(run, "analysis.parse", _decode, default=None)

    async def _persist(
        self,
        cmd: SubmitSolutionCommand,
        *,
        files: NormalizedFileSet,
        deploy: DeployOutcome,
        analysis: AnalyzerResult | None,
    ) -> SubmissionSnapshot:
        status = SubmissionStatus.FAILURE if deploy.build_failed or analysis is None else SubmissionStatus.SUCCESS
        try:
            return await self.repository.persist_submission(
                problem_id=cmd.problem_id,
                account_id=cmd.account_id,
                submitted_code=files,
                status=status,
                chat_history=list(cmd.chat_history),
                analysis=analysis,
                build_failed=deploy.build_failed,
                build_logs=deploy.build_logs,
            )
        except Exception as exc:
            raise SubmissionPersistenceError(f"failed to persist submission: {exc}") from exc

    async def _guarded(
        self,
        run: _PipelineRun,
        step: str,
        action: Callable[[], Awaitable[T]],
        *,
        default: T,
    ) -> T:
        policy = stage_policy(step)
        try:
            return await action()
        except Exception as exc:
            if policy.on_failure == "abort":
                raise
            logger.warning(
                "pipeline step failed, continuing with default",
                extra={
                    "submission_id": run.submission_id,
                    "stage": run.stage,
                    "step": step,
                    "detail": str(exc),
                },
            )
            return default

    def _advance(self, run: _PipelineRun, to_stage: SubmissionStage) -> None:
        if not is_allowed_transition(from_stage=run.stage, to_stage=to_stage):
            raise DomainInvariantError(f"invalid stage transition: {run.stage} -> {to_stage}")
        run.stage = to_stage
        self.progress.update(run.submission_id, to_stage)
        logger.info("stage started", extra={"submission_id": run.submission_id, "stage": to_stage})

    def _record_failure(self, run: _PipelineRun, exc: Exception) -> None:
        error_code = resolve_stage_error(stage=run.stage, code=_error_code_for(exc))
        message = str(exc) or DEFAULT_FAILURE_MESSAGE
        self.progress.update(run.submission_id, run.stage, error_message=message, error_code=error_code)
        logger.error(
            "submission failed",
            extra={
                "submission_id": run.submission_id,
                "stage": run.stage,
                "error_code": error_code,
                "detail": message,
            },
        )


def _error_code_for(exc: Exception) -> ErrorCode:
    if isinstance(exc, AgentCallError):
        return resolve_stage_error(stage=exc.stage, code=exc.error_code)
    if isinstance(exc, ProblemNotFoundError):
        return "problem_not_found"
    if isinstance(exc, DomainValidationError):
        return "validation_error"
    if isinstance(exc, PackagingError):
        return "packaging_failed"
    if isinstance(exc, SubmissionPersistenceError):
        return "persistence_failed"
    return "internal_error"


def _parse_deploy_response(response: AgentHttpResponse) -> DeployResponse:
    payload = json.loads(response.body)
    if not isinstance(payload, dict):
        raise ValueError("deploy response root must be JSON object")
    build_failed = payload.get("build_failed")
    build_logs = payload.get("build_logs")
    return DeployResponse(
        container_name=_optional_str(payload, "container_name"),
        container_id=_optional_str(payload, "container_id"),
        image_name=_optional_str(payload, "image_name"),
        image_id=_optional_str(payload, "image_id"),
        build_logs=build_logs if isinstance(build_logs, str) else None,
        build_failed=build_failed if isinstance(build_failed, bool) else None,
    )


def _optional_str(payload: dict[str, object], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None
