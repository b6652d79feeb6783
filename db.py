import json
import logging
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from db_pool import SQLiteConnectionPool
from errors import PersistenceError

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)

_JSON_FIELDS = {"avatar_config", "context", "skills_gained", "session_data"}


def is_uuid(value: Optional[str]) -> bool:
    """Return True when ``value`` looks like an internal UUID rather than a participant code."""
    return bool(value) and bool(_UUID_RE.match(str(value).strip()))


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True)


def _decode_json_field(value: Optional[str]) -> Any:
    if value in (None, ""):
        return None
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return value


def _row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    data = dict(row)
    for key in _JSON_FIELDS & data.keys():
        data[key] = _decode_json_field(data[key])
    if "onboarding_completed" in data and data["onboarding_completed"] is not None:
        data["onboarding_completed"] = bool(data["onboarding_completed"])
    return data


_SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS users (
  id             TEXT PRIMARY KEY,
  participant_id TEXT,
  username       TEXT,
  role           TEXT DEFAULT 'student',
  career_path    TEXT,
  created_at     TEXT NOT NULL,
  updated_at     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS student_profiles (
  user_id              TEXT PRIMARY KEY,
  interest_area        TEXT NOT NULL,
  avatar_config        TEXT,
  skill_level          TEXT,
  motivation           TEXT,
  aspirations          TEXT,
  learning_preference  TEXT,
  onboarding_completed INTEGER NOT NULL DEFAULT 0,
  created_at           TEXT NOT NULL,
  updated_at           TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS learning_goals (
  id            INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id       TEXT NOT NULL,
  goal_text     TEXT NOT NULL,
  goal_category TEXT,
  status        TEXT NOT NULL DEFAULT 'active',
  created_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_learning_goals_user ON learning_goals(user_id);

CREATE TABLE IF NOT EXISTS quiz_results (
  id              INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id         TEXT NOT NULL,
  quiz_type       TEXT NOT NULL,
  interest_area   TEXT,
  score           REAL NOT NULL,
  total_questions INTEGER NOT NULL,
  completed_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_quiz_results_user ON quiz_results(user_id, completed_at DESC);

CREATE TABLE IF NOT EXISTS decisions (
  id              INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id         TEXT NOT NULL,
  scenario_id     TEXT NOT NULL,
  session_id      TEXT,
  selected_option TEXT NOT NULL,
  round_number    INTEGER NOT NULL,
  ai_feedback     TEXT,
  outcome_score   INTEGER NOT NULL CHECK (outcome_score BETWEEN 0 AND 100),
  skills_gained   TEXT,
  created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_decisions_user ON decisions(user_id, created_at DESC);

CREATE TABLE IF NOT EXISTS simulation_sessions (
  id            TEXT PRIMARY KEY,
  user_id       TEXT NOT NULL,
  title         TEXT NOT NULL,
  description   TEXT,
  status        TEXT NOT NULL DEFAULT 'ongoing' CHECK (status IN ('ongoing', 'completed')),
  progress      INTEGER NOT NULL DEFAULT 0 CHECK (progress BETWEEN 0 AND 100),
  current_round INTEGER NOT NULL DEFAULT 1,
  total_rounds  INTEGER NOT NULL DEFAULT 5 CHECK (total_rounds >= 1),
  session_data  TEXT,
  created_at    TEXT NOT NULL,
  updated_at    TEXT NOT NULL,
  completed_at  TEXT
);

CREATE INDEX IF NOT EXISTS idx_simulation_sessions_user ON simulation_sessions(user_id, created_at DESC);

CREATE TABLE IF NOT EXISTS progress (
  id                        INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id                   TEXT NOT NULL,
  skill_name                TEXT NOT NULL,
  skill_level               INTEGER NOT NULL DEFAULT 0,
  total_scenarios_completed INTEGER NOT NULL DEFAULT 0,
  average_score             REAL NOT NULL DEFAULT 0,
  last_updated              TEXT NOT NULL,
  UNIQUE(user_id, skill_name)
);

CREATE TABLE IF NOT EXISTS ai_interactions (
  id               INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id          TEXT,
  participant_id   TEXT,
  interaction_type TEXT NOT NULL,
  context          TEXT,
  ai_response      TEXT NOT NULL,
  feedback_rating  INTEGER,
  created_at       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_ai_interactions_user ON ai_interactions(user_id);
CREATE INDEX IF NOT EXISTS idx_ai_interactions_participant ON ai_interactions(participant_id);
"""


class Store:
    """Relational persistence for onboarding, simulation and interaction data."""

    def __init__(self, path: str, max_connections: int = 10):
        self.path = str(path)
        self._pool = SQLiteConnectionPool(self.path, max_connections=max_connections)

    def _conn(self):
        """Return a context manager for acquiring a pooled SQLite connection."""
        return self._pool.get_connection()

    def _exec(self, sql: str, params: Iterable = ()) -> sqlite3.Cursor:
        try:
            with self._conn() as con:
                cur = con.execute(sql, tuple(params))
                con.commit()
                return cur
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"write failed: {exc}") from exc

    def _query(self, sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
        try:
            with self._conn() as con:
                return con.execute(sql, tuple(params)).fetchall()
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"read failed: {exc}") from exc

    def init(self) -> None:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._conn() as con:
                con.executescript(_SCHEMA)
                con.commit()
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"schema initialisation failed: {exc}") from exc

    def close(self) -> None:
        self._pool.close_all()

    # ---------- users ----------
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM users WHERE id = ?", (user_id,))
        return _row_to_dict(rows[0]) if rows else None

    def update_career_path(self, user_id: str, career_path: str) -> None:
        """Keep the denormalised ``users.career_path`` in step with the interest area."""
        now = utc_now()
        self._exec(
            """
            INSERT INTO users (id, career_path, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              career_path = excluded.career_path,
              updated_at = excluded.updated_at
            """,
            (user_id, career_path, now, now),
        )

    # ---------- onboarding ----------
    def upsert_profile(
        self,
        user_id: str,
        interest_area: str,
        *,
        avatar: Any = None,
        skill_level: Optional[str] = None,
        motivation: Optional[str] = None,
        aspirations: Optional[str] = None,
        learning_preference: Optional[str] = None,
        completed: bool = True,
    ) -> Dict[str, Any]:
        now = utc_now()
        self._exec(
            """
            INSERT INTO student_profiles (
              user_id, interest_area, avatar_config, skill_level, motivation,
              aspirations, learning_preference, onboarding_completed, created_at, updated_at
            )
            VALUES (?,?,?,?,?,?,?,?,?,?)
            ON CONFLICT(user_id) DO UPDATE SET
              interest_area = excluded.interest_area,
              avatar_config = excluded.avatar_config,
              skill_level = excluded.skill_level,
              motivation = excluded.motivation,
              aspirations = excluded.aspirations,
              learning_preference = excluded.learning_preference,
              onboarding_completed = excluded.onboarding_completed,
              updated_at = excluded.updated_at
            """,
            (
                user_id,
                interest_area,
                None if avatar is None else json_dumps(avatar),
                skill_level,
                motivation,
                aspirations,
                learning_preference,
                int(bool(completed)),
                now,
                now,
            ),
        )
        profile = self.get_profile(user_id)
        if profile is None:
            raise PersistenceError(f"profile for {user_id} missing after upsert")
        return profile

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM student_profiles WHERE user_id = ?", (user_id,))
        return _row_to_dict(rows[0]) if rows else None

    def insert_quiz_result(
        self,
        user_id: str,
        interest_area: Optional[str],
        score: float,
        *,
        total_questions: int = 3,
        quiz_type: str = "onboarding",
    ) -> int:
        cur = self._exec(
            """
            INSERT INTO quiz_results (user_id, quiz_type, interest_area, score, total_questions, completed_at)
            VALUES (?,?,?,?,?,?)
            """,
            (user_id, quiz_type, interest_area, float(score), int(total_questions), utc_now()),
        )
        return int(cur.lastrowid)

    def list_quiz_results(self, user_id: str, limit: int = 20) -> list[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM quiz_results WHERE user_id = ? ORDER BY completed_at DESC, id DESC LIMIT ?",
            (user_id, int(limit)),
        )
        return [_row_to_dict(row) for row in rows]

    def insert_learning_goals(self, user_id: str, goals: Sequence[Mapping[str, Any]]) -> int:
        """Insert all ``goals`` in one transaction and return how many were written."""
        now = utc_now()
        records = [
            (user_id, str(goal.get("text") or "").strip(), goal.get("category"), "active", now)
            for goal in goals
        ]
        records = [record for record in records if record[1]]
        if not records:
            return 0
        try:
            with self._conn() as con:
                con.executemany(
                    """
                    INSERT INTO learning_goals (user_id, goal_text, goal_category, status, created_at)
                    VALUES (?,?,?,?,?)
                    """,
                    records,
                )
                con.commit()
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"goal insert failed: {exc}") from exc
        return len(records)

    def list_learning_goals(self, user_id: str) -> list[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM learning_goals WHERE user_id = ? ORDER BY id", (user_id,)
        )
        return [_row_to_dict(row) for row in rows]

    # ---------- simulation ----------
    def insert_decision(
        self,
        user_id: str,
        scenario_id: str,
        option_id: str,
        round_number: int,
        ai_feedback: str,
        outcome_score: int,
        skills_gained: Mapping[str, int],
        *,
        session_id: Optional[str] = None,
    ) -> int:
        cur = self._exec(
            """
            INSERT INTO decisions (
              user_id, scenario_id, session_id, selected_option, round_number,
              ai_feedback, outcome_score, skills_gained, created_at
            )
            VALUES (?,?,?,?,?,?,?,?,?)
            """,
            (
                user_id,
                scenario_id,
                session_id,
                option_id,
                int(round_number),
                ai_feedback,
                int(outcome_score),
                json_dumps(dict(skills_gained)),
                utc_now(),
            ),
        )
        return int(cur.lastrowid)

    def list_decisions(self, user_id: str, limit: int = 10) -> list[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM decisions WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
            (user_id, int(limit)),
        )
        return [_row_to_dict(row) for row in rows]

    def decision_stats(self, user_id: str) -> Dict[str, Any]:
        """Lifetime decision count and mean outcome score for ``user_id``."""
        rows = self._query(
            "SELECT COUNT(*) AS total, AVG(outcome_score) AS average FROM decisions WHERE user_id = ?",
            (user_id,),
        )
        row = rows[0]
        return {"total": int(row["total"]), "average": float(row["average"] or 0.0)}

    # ---------- simulation sessions ----------
    def create_session(
        self,
        session_id: str,
        user_id: str,
        title: str,
        *,
        description: Optional[str] = None,
        total_rounds: int = 5,
        session_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        now = utc_now()
        self._exec(
            """
            INSERT INTO simulation_sessions (
              id, user_id, title, description, status, progress, current_round,
              total_rounds, session_data, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, 'ongoing', 0, 1, ?, ?, ?, ?)
            """,
            (
                session_id,
                user_id,
                title,
                description,
                int(total_rounds),
                json_dumps(dict(session_data or {})),
                now,
                now,
            ),
        )
        session = self.get_session(session_id)
        if session is None:
            raise PersistenceError(f"session {session_id} missing after insert")
        return session

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM simulation_sessions WHERE id = ?", (session_id,))
        return _row_to_dict(rows[0]) if rows else None

    def list_sessions(self, user_id: str, limit: int = 20) -> list[Dict[str, Any]]:
        rows = self._query(
            """
            SELECT * FROM simulation_sessions
            WHERE user_id = ?
            ORDER BY created_at DESC, rowid DESC LIMIT ?
            """,
            (user_id, int(limit)),
        )
        return [_row_to_dict(row) for row in rows]

    def advance_session(self, session_id: str, round_number: int) -> Optional[Dict[str, Any]]:
        """Record that ``round_number`` was played in an ongoing session.

        The session moves to the following round, or is completed once the final
        round has been played. Rounds never move backwards. Returns None when no
        ongoing session has ``session_id``.
        """
        try:
            with self._conn() as con:
                cur = con.execute(
                    """
                    UPDATE simulation_sessions SET
                      current_round = CASE WHEN ?1 >= total_rounds THEN total_rounds
                                           ELSE MAX(current_round, ?2) END,
                      status = CASE WHEN ?1 >= total_rounds THEN 'completed' ELSE status END,
                      progress = CASE WHEN ?1 >= total_rounds THEN 100
                                      ELSE CAST(ROUND(MAX(current_round, ?2) * 100.0 / total_rounds) AS INTEGER) END,
                      completed_at = CASE WHEN ?1 >= total_rounds THEN ?3 ELSE completed_at END,
                      updated_at = ?3
                    WHERE id = ?4 AND status = 'ongoing'
                    """,
                    (int(round_number), int(round_number) + 1, utc_now(), session_id),
                )
                if cur.rowcount == 0:
                    con.rollback()
                    return None
                row = con.execute(
                    "SELECT * FROM simulation_sessions WHERE id = ?", (session_id,)
                ).fetchone()
                con.commit()
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"session update failed for {session_id}: {exc}") from exc
        return _row_to_dict(row)

    def apply_progress_delta(self, user_id: str, skill_name: str, delta: int, score: float) -> Dict[str, Any]:
        """Fold one scored decision into the (user, skill) running totals.

        The insert-or-increment is a single statement, so two submissions for the
        same pair serialise on SQLite's write lock instead of overwriting each other.
        """
        try:
            with self._conn() as con:
                con.execute(
                    """
                    INSERT INTO progress (
                      user_id, skill_name, skill_level, total_scenarios_completed, average_score, last_updated
                    )
                    VALUES (?, ?, ?, 1, ?, ?)
                    ON CONFLICT(user_id, skill_name) DO UPDATE SET
                      skill_level = progress.skill_level + excluded.skill_level,
                      average_score = (progress.average_score * progress.total_scenarios_completed
                                       + excluded.average_score)
                                      / (progress.total_scenarios_completed + 1),
                      total_scenarios_completed = progress.total_scenarios_completed + 1,
                      last_updated = excluded.last_updated
                    """,
                    (user_id, skill_name, int(delta), float(score), utc_now()),
                )
                row = con.execute(
                    "SELECT * FROM progress WHERE user_id = ? AND skill_name = ?",
                    (user_id, skill_name),
                ).fetchone()
                con.commit()
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"progress update failed for {skill_name}: {exc}") from exc
        return _row_to_dict(row)

    def get_progress(self, user_id: str, skill_name: str) -> Optional[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM progress WHERE user_id = ? AND skill_name = ?", (user_id, skill_name)
        )
        return _row_to_dict(rows[0]) if rows else None

    def list_progress(self, user_id: str) -> list[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM progress WHERE user_id = ? ORDER BY skill_level DESC, skill_name",
            (user_id,),
        )
        return [_row_to_dict(row) for row in rows]

    # ---------- AI interactions ----------
    def log_interaction(
        self,
        user_ref: str,
        interaction_type: str,
        ai_response: str,
        *,
        context: Optional[Mapping[str, Any]] = None,
        rating: Optional[int] = None,
        participant_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Append an interaction row.

        ``user_ref`` fills ``user_id`` when it is a UUID and ``participant_id``
        otherwise; an explicit ``participant_id`` is only used for UUID refs.
        """
        if is_uuid(user_ref):
            user_id, participant = user_ref, participant_id
        else:
            user_id, participant = None, user_ref
        cur = self._exec(
            """
            INSERT INTO ai_interactions (
              user_id, participant_id, interaction_type, context, ai_response, feedback_rating, created_at
            )
            VALUES (?,?,?,?,?,?,?)
            """,
            (
                user_id,
                participant,
                interaction_type,
                json_dumps(dict(context or {})),
                ai_response,
                None if rating is None else int(rating),
                utc_now(),
            ),
        )
        rows = self._query("SELECT * FROM ai_interactions WHERE id = ?", (cur.lastrowid,))
        return _row_to_dict(rows[0])

    def list_interactions(self, user_ref: Optional[str] = None, limit: int = 100) -> list[Dict[str, Any]]:
        if user_ref:
            rows = self._query(
                """
                SELECT * FROM ai_interactions
                WHERE user_id = ? OR participant_id = ?
                ORDER BY id DESC LIMIT ?
                """,
                (user_ref, user_ref, int(limit)),
            )
        else:
            rows = self._query(
                "SELECT * FROM ai_interactions ORDER BY id DESC LIMIT ?", (int(limit),)
            )
        return [_row_to_dict(row) for row in rows]
