"""Per-skill progress tracking fed by scored simulation decisions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from db import Store
from errors import PersistenceError

logger = logging.getLogger(__name__)


def running_average(old_avg: float, old_count: int, score: float) -> float:
    """Weighted mean after folding one more score into ``old_count`` previous ones."""
    if old_count <= 0:
        return float(score)
    return (float(old_avg) * old_count + float(score)) / (old_count + 1)


@dataclass
class ProgressUpdateResult:
    updated: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_payload(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "skills": sorted(self.updated),
            "failed": dict(self.failed),
        }


class ProgressUpdater:
    def __init__(self, store: Store):
        self.store = store

    def apply(self, user_id: str, skills_gained: Mapping[str, int], outcome_score: float) -> ProgressUpdateResult:
        """Attempt exactly one progress update per skill key.

        Skills are independent: a failed skill is recorded and the rest still run.
        """
        result = ProgressUpdateResult()
        for skill, delta in skills_gained.items():
            try:
                result.updated[skill] = self.store.apply_progress_delta(user_id, skill, int(delta), outcome_score)
            except PersistenceError as exc:
                logger.warning("Progress update failed for %s/%s: %s", user_id, skill, exc)
                result.failed[skill] = str(exc)
        return result

    def summary(self, user_id: str) -> List[Dict[str, Any]]:
        return self.store.list_progress(user_id)
