from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.models import AnalyzerResult, SubmissionStage, SubmissionStatus


SUBMISSION_RECORD_ID_PATTERN = r"^sub_[0-9A-HJKMNP-TV-Z]{26}$"


class ErrorResponse(BaseModel):
    detail: str


class HealthResponse(BaseModel):
    status: str
    service: str
    agent_client_mode: str


class ReadyResponse(BaseModel):
    status: str
    service: str
    repository: str
    pipeline_spec_version: str


class SandboxFileObject(BaseModel):
    code: str
    hidden: bool | None = None
    active: bool | None = None


class ChatMessageSchema(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class SubmitSolutionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    problem_id: int = Field(alias="problemId", ge=1)
    files: dict[str, str | SandboxFileObject]
    submission_id: str = Field(alias="submissionId", min_length=1, max_length=128)
    chat_history: list[ChatMessageSchema] = Field(alias="chatHistory", default_factory=list)
    account_id: str | None = Field(alias="accountId", default=None, max_length=256)

    @field_validator("files")
    @classmethod
    def _virtual_paths_are_slash_prefixed(
        cls, value: dict[str, str | SandboxFileObject]
    ) -> dict[str, str | SandboxFileObject]:
        for path in value:
            if not path.startswith("/"):
                raise ValueError(f"file path must start with '/': {path}")
        return value


class SubmitSolutionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    received_files: int = Field(alias="receivedFiles")
    problem_id: int = Field(alias="problemId")
    build_failed: bool = Field(alias="buildFailed")
    build_logs: str = Field(alias="buildLogs")
    analysis: AnalyzerResult | None
    submission_record_id: str = Field(
        alias="submissionRecordId",
        pattern=SUBMISSION_RECORD_ID_PATTERN,
    )


class ProgressStateSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    stage: SubmissionStage
    error_message: str | None = Field(alias="errorMessage")
    error_code: str | None = Field(alias="errorCode")
    updated_at: datetime = Field(alias="updatedAt")


class SubmissionProgressResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission_id: str = Field(alias="submissionId")
    progress: ProgressStateSchema | None
    terminal: bool


class SubmissionRecordResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submission_id: str = Field(alias="id", pattern=SUBMISSION_RECORD_ID_PATTERN)
    problem_id: int = Field(alias="problemId")
    account_id: str | None = Field(alias="accountId")
    submitted_code: dict[str, str] = Field(alias="submittedCode")
    status: SubmissionStatus
    chat_history: list[ChatMessageSchema] = Field(alias="chatHistory")
    analysis: AnalyzerResult | None
    build_failed: bool = Field(alias="buildFailed")
    build_logs: str = Field(alias="buildLogs")
    created_at: datetime = Field(alias="createdAt")


class SubmissionListResponse(BaseModel):
    items: list[SubmissionRecordResponse]
