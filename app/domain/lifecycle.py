from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from app.domain.models import SubmissionStage

OnFailure = Literal["abort", "continue_with_default"]


@dataclass(frozen=True)
class StagePolicy:
    step: str
    stage: SubmissionStage
    on_failure: OnFailure
    description: str


# Every external step of the pipeline declares what a failure means for the run.
# "abort" steps propagate their error; "continue_with_default" steps substitute
# a default value and let the next stage run.
STAGE_POLICIES: dict[str, StagePolicy] = {
    "tests.call": StagePolicy(
        step="tests.call",
        stage=SubmissionStage.TESTS,
        on_failure="abort",
        description="test-generation agent request",
    ),
    "tests.parse": StagePolicy(
        step="tests.parse",
        stage=SubmissionStage.TESTS,
        on_failure="continue_with_default",
        description="generated tests payload; default is no extra files",
    ),
    "deploy.call": StagePolicy(
        step="deploy.call",
        stage=SubmissionStage.DEPLOY,
        on_failure="continue_with_default",
        description="deploy agent request; default is an unconfirmed build with empty logs",
    ),
    "analysis.call": StagePolicy(
        step="analysis.call",
        stage=SubmissionStage.ANALYSIS,
        on_failure="abort",
        description="analyzer agent request",
    ),
    "analysis.parse": StagePolicy(
        step="analysis.parse",
        stage=SubmissionStage.ANALYSIS,
        on_failure="continue_with_default",
        description="analyzer payload; default is no analysis and a failed submission",
    ),
}


STAGE_ORDER: tuple[SubmissionStage, ...] = (
    SubmissionStage.TESTS,
    SubmissionStage.DEPLOY,
    SubmissionStage.ANALYSIS,
    SubmissionStage.DONE,
)


ALLOWED_TRANSITIONS: dict[SubmissionStage, set[SubmissionStage]] = {
    SubmissionStage.TESTS: {SubmissionStage.DEPLOY},
    SubmissionStage.DEPLOY: {SubmissionStage.ANALYSIS},
    SubmissionStage.ANALYSIS: {SubmissionStage.DONE},
    SubmissionStage.DONE: set(),
}


def stage_policy(step: str) -> StagePolicy:
    policy = STAGE_POLICIES.get(step)
    if policy is None:
        raise ValueError(f"unknown pipeline step: {step}")
    return policy


def is_allowed_transition(*, from_stage: SubmissionStage, to_stage: SubmissionStage) -> bool:
    return to_stage in ALLOWED_TRANSITIONS.get(from_stage, set())
