"""Saving an onboarding profile as a sequence of independently failable writes.

Only the profile write is fatal. Quiz result, learning goals and the
denormalised career path are attempted afterwards and report their own
outcome so partial saves are visible to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from db import Store
from errors import PersistenceError
from schemas import SaveProfileBody

logger = logging.getLogger(__name__)

ONBOARDING_QUIZ_QUESTIONS = 3


@dataclass
class SagaStep:
    name: str
    ok: bool = False
    skipped: bool = False
    error: Optional[str] = None

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"ok": self.ok, "skipped": self.skipped}
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class ProfileSaveResult:
    profile: Dict[str, Any]
    steps: List[SagaStep] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(step.ok or step.skipped for step in self.steps)

    def step(self, name: str) -> SagaStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def steps_payload(self) -> Dict[str, Dict[str, Any]]:
        return {step.name: step.as_payload() for step in self.steps}


def _run_step(name: str, action: Callable[[], Any], *, skip: bool = False) -> SagaStep:
    step = SagaStep(name=name)
    if skip:
        step.skipped = True
        return step
    try:
        action()
        step.ok = True
    except PersistenceError as exc:
        logger.warning("Onboarding step %s failed: %s", name, exc)
        step.error = str(exc)
    return step


def save_onboarding_profile(store: Store, body: SaveProfileBody) -> ProfileSaveResult:
    """Upsert the profile, then run the secondary writes.

    Raises PersistenceError when the profile itself cannot be written.
    """
    user_id = body.user_id.strip()
    interest_area = body.interest_area.strip()

    try:
        profile = store.upsert_profile(
            user_id,
            interest_area,
            avatar=body.avatar,
            skill_level=body.skill_level,
            motivation=body.motivation,
            aspirations=body.aspirations,
            learning_preference=body.learning_preference,
            completed=True,
        )
    except PersistenceError:
        logger.error("Profile save failed for %s", user_id, exc_info=True)
        raise

    result = ProfileSaveResult(profile=profile, steps=[SagaStep(name="profile", ok=True)])

    result.steps.append(
        _run_step(
            "quiz_result",
            lambda: store.insert_quiz_result(
                user_id,
                interest_area,
                body.quiz_score,
                total_questions=ONBOARDING_QUIZ_QUESTIONS,
            ),
            skip=body.quiz_score is None,
        )
    )

    goals = [goal.model_dump() for goal in body.goals or () if (goal.text or "").strip()]
    result.steps.append(
        _run_step(
            "learning_goals",
            lambda: store.insert_learning_goals(user_id, goals),
            skip=not goals,
        )
    )

    result.steps.append(
        _run_step("career_path", lambda: store.update_career_path(user_id, interest_area))
    )

    if not result.complete:
        logger.warning(
            "Onboarding profile for %s saved with failed steps: %s",
            user_id,
            [step.name for step in result.steps if not (step.ok or step.skipped)],
        )
    return result
