from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# Canonical pipeline stages, in the only order a run may visit them.
#
# IMPORTANT:
# - Keep this enum synchronized with app/domain/lifecycle.py
#   (STAGE_ORDER, ALLOWED_TRANSITIONS and STAGE_POLICIES).
# - Keep it synchronized with STAGE_ERROR_MAP in app/domain/error_taxonomy.py.
class SubmissionStage(StrEnum):
    TESTS = "tests"
    DEPLOY = "deploy"
    ANALYSIS = "analysis"
    DONE = "done"


class SubmissionStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


ChatRole = Literal["user", "assistant"]

# Sandbox file map: virtual path -> raw text or {"code": ..., "hidden": ..., "active": ...}.
SandboxFileContent = str | dict[str, object]
SandboxFiles = dict[str, SandboxFileContent]

# On-disk style path (no leading slash) -> text content.
NormalizedFileSet = dict[str, str]


@dataclass(frozen=True)
class ChatMessage:
    role: ChatRole
    content: str

    def as_json(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class SubmissionProgressState:
    stage: SubmissionStage
    error_message: str | None
    updated_at: datetime
    error_code: str | None = None


@dataclass(frozen=True)
class ProblemSnapshot:
    problem_id: int
    name: str
    category: str
    difficulty: str
    description: dict[str, object]


class ScoredCriterion(BaseModel):
    score: int = Field(ge=0, le=100)
    rationale: str


class AnalyzerResult(BaseModel):
    # Produced by the analyzer agent; field names follow its camelCase payload.
    model_config = ConfigDict(populate_by_name=True)

    code_quality: ScoredCriterion = Field(alias="codeQuality")
    functionality: ScoredCriterion
    production_ability: ScoredCriterion = Field(alias="productionAbility")
    chat_history: ScoredCriterion = Field(alias="chatHistory")
    overall_verdict: str = Field(alias="overallVerdict")


@dataclass(frozen=True)
class DeployResponse:
    container_name: str | None = None
    container_id: str | None = None
    image_name: str | None = None
    image_id: str | None = None
    build_logs: str | None = None
    build_failed: bool | None = None


@dataclass(frozen=True)
class DeployOutcome:
    fetch_ok: bool
    response: DeployResponse | None = None

    @property
    def build_failed(self) -> bool:
        if self.response is not None and self.response.build_failed is not None:
            return self.response.build_failed
        return not self.fetch_ok

    @property
    def build_logs(self) -> str:
        if self.response is None:
            return ""
        return self.response.build_logs or ""


@dataclass(frozen=True)
class SubmissionSnapshot:
    submission_id: str
    problem_id: int
    account_id: str | None
    submitted_code: NormalizedFileSet
    status: SubmissionStatus
    chat_history: list[ChatMessage]
    analysis: AnalyzerResult | None
    build_failed: bool
    build_logs: str
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
