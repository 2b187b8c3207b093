from __future__ import annotations


class DomainError(Exception):
    pass


class DomainValidationError(DomainError):
    pass


class DomainInvariantError(DomainError):
    pass


class DomainDependencyError(DomainError):
    pass


class PackagingError(DomainError):
    pass


class SubmissionPersistenceError(DomainDependencyError):
    pass


class ProblemNotFoundError(DomainInvariantError):
    def __init__(self, problem_id: int) -> None:
        super().__init__(f"problem not found: {problem_id}")
        self.problem_id = problem_id


class AgentCallError(DomainDependencyError):
    """Raised when an agent call fails in a way the stage cannot absorb."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        error_code: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.error_code = error_code
        self.status_code = status_code
