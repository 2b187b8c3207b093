from __future__ import annotations

from dataclasses import dataclass, field

from app.domain.models import (
    AnalyzerResult,
    ChatMessage,
    NormalizedFileSet,
    SandboxFiles,
)


@dataclass(frozen=True)
class SubmitSolutionCommand:
    problem_id: int
    files: SandboxFiles
    submission_id: str
    chat_history: list[ChatMessage] = field(default_factory=list)
    account_id: str | None = None


@dataclass(frozen=True)
class SubmissionResult:
    received_files: int
    problem_id: int
    build_failed: bool
    build_logs: str
    analysis: AnalyzerResult | None
    submission_record_id: str


@dataclass(frozen=True)
class TestGenerationRequest:
    __test__ = False

    problem_id: int
    problem_description: dict[str, object]
    files: NormalizedFileSet

    def payload(self) -> dict[str, object]:
        return {
            "problemId": self.problem_id,
            "problemDescription": self.problem_description,
            "files": dict(self.files),
        }


@dataclass(frozen=True)
class DeployRequest:
    docker_file: str
    base64_tar_file: str

    def payload(self) -> dict[str, object]:
        return {
            "docker_file": self.docker_file,
            "base64TarFile": self.base64_tar_file,
        }


@dataclass(frozen=True)
class AnalysisRequest:
    problem_id: int
    problem_description: dict[str, object]
    files: NormalizedFileSet
    build_logs: str
    chat_history: list[ChatMessage]

    def payload(self) -> dict[str, object]:
        return {
            "problemId": self.problem_id,
            "problemDescription": self.problem_description,
            "files": dict(self.files),
            "buildLogs": self.build_logs,
            "chatHistory": [message.as_json() for message in self.chat_history],
        }


@dataclass(frozen=True)
class AgentHttpResponse:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
