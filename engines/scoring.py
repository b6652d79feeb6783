"""Local scoring strategy for simulation decisions.

No model is consulted here: the feedback text, base score and skill gains are
drawn at random from fixed tables. The selected option is recorded by the
caller but does not influence the outcome.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

BASE_SCORE_MIN = 60
BASE_SCORE_MAX = 90  # exclusive
ROUND_BONUS_PER_ROUND = 2
MAX_SCORE = 100

FEEDBACK_TEMPLATES: List[str] = [
    "Excellent choice! Your decision shows strong understanding of the Liberian business environment and demonstrates effective leadership skills.",
    "Good strategic thinking! This approach balances risk and opportunity well, which is crucial for entrepreneurial success in emerging markets.",
    "Thoughtful decision! Your choice reflects careful consideration of stakeholder interests and long-term business sustainability.",
    "Strong entrepreneurial mindset! This decision shows you understand the importance of resource management and strategic planning.",
    "Well-reasoned approach! Your choice demonstrates good understanding of market dynamics and customer needs in the local context.",
]

SKILL_MAPS: List[Dict[str, int]] = [
    {"leadership": 3, "strategic_thinking": 2, "communication": 1},
    {"problem_solving": 3, "adaptability": 2, "financial_management": 1},
    {"innovation": 3, "networking": 2, "risk_management": 1},
]


def clamp_score(value: float) -> int:
    return int(max(0, min(MAX_SCORE, value)))


def outcome_score(base: int, round_number: int) -> int:
    """``min(100, base + 2 * round)``, never below zero."""
    return clamp_score(min(MAX_SCORE, base + round_number * ROUND_BONUS_PER_ROUND))


@dataclass
class DecisionOutcome:
    ai_feedback: str
    outcome_score: int
    skills_gained: Dict[str, int]
    base_score: int = field(repr=False, default=0)

    def as_payload(self) -> Dict[str, object]:
        return {
            "ai_feedback": self.ai_feedback,
            "outcome_score": self.outcome_score,
            "skills_gained": dict(self.skills_gained),
        }


class LocalDecisionScorer:
    """Scores a simulation round without calling the AI gateway."""

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        random_seed: int | None = None,
        templates: Sequence[str] | None = None,
        skill_maps: Sequence[Mapping[str, int]] | None = None,
    ) -> None:
        self.rng = rng or random.Random(random_seed)
        self.templates = list(FEEDBACK_TEMPLATES if templates is None else templates)
        self.skill_maps = [dict(m) for m in (SKILL_MAPS if skill_maps is None else skill_maps)]
        if not self.templates or not self.skill_maps:
            raise ValueError("scorer needs at least one feedback template and one skill map")

    def base_score(self) -> int:
        return self.rng.randrange(BASE_SCORE_MIN, BASE_SCORE_MAX)

    def feedback(self) -> str:
        return self.rng.choice(self.templates)

    def skills_gained(self) -> Dict[str, int]:
        return dict(self.rng.choice(self.skill_maps))

    def score(self, option_id: str, scenario_id: str, round_number: int) -> DecisionOutcome:
        base = self.base_score()
        return DecisionOutcome(
            ai_feedback=self.feedback(),
            outcome_score=outcome_score(base, round_number),
            skills_gained=self.skills_gained(),
            base_score=base,
        )
