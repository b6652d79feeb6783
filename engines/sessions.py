"""Simulation session lifecycle: start, validate a submitted round, advance."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from db import Store, utc_now
from errors import ConflictError, NotFoundError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_ROUNDS = 5
DEFAULT_CAREER_PATH = "ceo"
DEFAULT_DESCRIPTION = "Strategic business challenges for entrepreneurial development"

CAREER_DESCRIPTIONS: Dict[str, str] = {
    "ceo": "Executive leadership challenges for strategic decision-making",
    "cto": "Technology leadership scenarios for innovation management",
    "marketing": "Brand and market challenges for customer engagement",
    "finance": "Financial strategy scenarios for business growth",
    "operations": "Operational excellence challenges for efficiency optimization",
    "sales": "Revenue generation scenarios for business development",
    "hr": "People management challenges for organizational success",
    "product": "Product strategy scenarios for user-centered innovation",
}


def session_title(career_path: str) -> str:
    return f"{career_path.upper()} Leadership Simulation"


def session_description(career_path: str) -> str:
    return CAREER_DESCRIPTIONS.get(career_path.strip().lower(), DEFAULT_DESCRIPTION)


def start_session(store: Store, user_id: str, *, total_rounds: int = DEFAULT_TOTAL_ROUNDS) -> Dict[str, Any]:
    """Open a new ongoing session at round 1, titled after the user's career path."""
    user = store.get_user(user_id)
    career_path = ((user or {}).get("career_path") or "").strip() or DEFAULT_CAREER_PATH
    session = store.create_session(
        str(uuid4()),
        user_id,
        session_title(career_path),
        description=session_description(career_path),
        total_rounds=total_rounds,
        session_data={"career_path": career_path, "started_at": utc_now()},
    )
    logger.info("Started simulation session %s for %s (%d rounds)", session["id"], user_id, total_rounds)
    return session


def check_round(store: Store, session_id: str, user_id: str, round_number: int) -> Dict[str, Any]:
    """Return the session a round is submitted against, or raise.

    Unknown sessions and sessions owned by another user are both reported as
    not found.
    """
    session = store.get_session(session_id)
    if session is None or session["user_id"] != user_id:
        raise NotFoundError("session not found")
    if session["status"] == "completed":
        raise ConflictError("session already completed")
    if round_number > session["total_rounds"]:
        raise ValidationError(f"round must be between 1 and {session['total_rounds']}")
    return session


def advance(store: Store, session_id: str, round_number: int) -> Optional[Dict[str, Any]]:
    """Best-effort: a failed update is logged and reported as None."""
    try:
        session = store.advance_session(session_id, round_number)
    except PersistenceError as exc:
        logger.warning("Could not advance session %s past round %s: %s", session_id, round_number, exc)
        return None
    if session is None:
        logger.warning("Session %s was no longer ongoing when round %s finished", session_id, round_number)
    return session
