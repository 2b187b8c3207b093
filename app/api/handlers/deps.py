from __future__ import annotations

from dataclasses import dataclass

from app.domain.contracts import AgentClient, ProgressStore, SubmissionRepository
from app.domain.pipeline_spec import PipelineSpec
from app.domain.use_cases.submit import SubmissionPipeline
from app.settings import PipelineSettings


@dataclass(frozen=True)
class ApiDeps:
    repository: SubmissionRepository
    progress: ProgressStore
    agents: AgentClient
    spec: PipelineSpec
    settings: PipelineSettings
    pipeline: SubmissionPipeline
