from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from app.api.handlers.deps import ApiDeps
from app.clients.agents import HttpAgentClient
from app.clients.stub import StubAgentClient
from app.domain.contracts import AgentClient, ProgressStore, SubmissionRepository
from app.domain.pipeline_spec import PipelineSpec, load_pipeline_spec
from app.domain.use_cases.submit import SubmissionPipeline
from app.repositories.postgres import AsyncpgPoolManager, PostgresSubmissionRepository
from app.repositories.progress import InMemoryProgressStore
from app.repositories.stub import InMemorySubmissionRepository
from app.settings import PipelineSettings, pipeline_settings_from_env

DEMO_PROBLEM: dict[str, object] = {
    "problem_id": 1,
    "name": "Debounced search box",
    "description": {
        "timeLimit": "45 minutes",
        "aiConstraints": "Assistant may rewrite files; explain every accepted change.",
        "longDescription": "Build a search input that queries the data interface after the user stops typing.",
        "dataInterface": "search(query: string): Promise<string[]>",
        "requirements": [
            {"title": "Behaviour", "items": ["Debounce input by 300ms", "Show a loading state"], "isCritical": True},
        ],
    },
}


@dataclass
class RuntimeContainer:
    settings: PipelineSettings
    spec: PipelineSpec
    repository: SubmissionRepository
    progress: ProgressStore
    agents: AgentClient
    pipeline: SubmissionPipeline
    api_deps: ApiDeps
    on_startup: Callable[[], Awaitable[None]] | None
    on_shutdown: Callable[[], Awaitable[None]] | None


def build_runtime_container(settings: PipelineSettings | None = None) -> RuntimeContainer:
    settings = settings or pipeline_settings_from_env()
    spec = load_pipeline_spec(file_path=settings.pipeline_spec_path)

    on_startup: Callable[[], Awaitable[None]] | None = None
    on_shutdown: Callable[[], Awaitable[None]] | None = None
    repository: SubmissionRepository
    if settings.database_url:
        pool_manager = AsyncpgPoolManager(dsn=settings.database_url)
        repository = PostgresSubmissionRepository(pool_manager=pool_manager)
        on_startup = pool_manager.startup
        on_shutdown = pool_manager.shutdown
    else:
        memory_repository = InMemorySubmissionRepository()
        # Local mode has no problem catalogue; expose one demo problem to submit against.
        memory_repository.seed_problem(**DEMO_PROBLEM)
        repository = memory_repository

    agents: AgentClient
    if settings.agent_client_mode == "stub":
        agents = StubAgentClient()
    else:
        agents = HttpAgentClient(settings=settings, spec=spec)

    progress = InMemoryProgressStore()
    pipeline = SubmissionPipeline(
        repository=repository,
        agents=agents,
        progress=progress,
        spec=spec,
        progress_retention_seconds=settings.progress_retention_seconds,
    )
    api_deps = ApiDeps(
        repository=repository,
        progress=progress,
        agents=agents,
        spec=spec,
        settings=settings,
        pipeline=pipeline,
    )

    return RuntimeContainer(
        settings=settings,
        spec=spec,
        repository=repository,
        progress=progress,
        agents=agents,
        pipeline=pipeline,
        api_deps=api_deps,
        on_startup=on_startup,
        on_shutdown=on_shutdown,
    )
