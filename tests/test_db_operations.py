"""Test cases for db operations."""

import pytest

from db import Store, is_uuid
from errors import PersistenceError

UUID_USER = "123e4567-e89b-12d3-a456-426614174000"


@pytest.mark.parametrize(
    "value, expected",
    [
        (UUID_USER, True),
        (UUID_USER.upper(), True),
        ("STU001", False),
        ("123e4567-e89b-12d3-a456", False),
        ("", False),
        (None, False),
    ],
)
def test_is_uuid(value, expected):
    assert is_uuid(value) is expected


def test_interaction_routing_by_identifier_shape(temp_store):
    temp_store.log_interaction(UUID_USER, "mentor_chat", "Hi")
    temp_store.log_interaction("STU001", "mentor_chat", "Hello")

    with temp_store._conn() as con:
        rows = con.execute("SELECT user_id, participant_id FROM ai_interactions ORDER BY id").fetchall()
    assert [tuple(row) for row in rows] == [(UUID_USER, None), (None, "STU001")]


def test_explicit_participant_id_is_kept_for_uuid_refs(temp_store):
    row = temp_store.log_interaction(UUID_USER, "mentor_chat", "Hi", participant_id="STU009")
    assert row["user_id"] == UUID_USER
    assert row["participant_id"] == "STU009"


def test_profile_upsert_is_idempotent(temp_store):
    first = temp_store.upsert_profile("u1", "Tech", avatar={"hair": "short"})
    second = temp_store.upsert_profile("u1", "Agriculture", skill_level="beginner")

    assert first["created_at"] == second["created_at"]
    assert second["interest_area"] == "Agriculture"
    assert second["avatar_config"] is None
    assert second["onboarding_completed"] is True

    with temp_store._conn() as con:
        count = con.execute("SELECT COUNT(*) FROM student_profiles").fetchone()[0]
    assert count == 1


def test_avatar_round_trips_as_json(temp_store):
    profile = temp_store.upsert_profile("u1", "Tech", avatar={"skin": 3, "hat": True})
    assert profile["avatar_config"] == {"hat": True, "skin": 3}


def test_quiz_results_append(temp_store):
    temp_store.insert_quiz_result("u1", "Tech", 2)
    temp_store.insert_quiz_result("u1", "Tech", 3)

    results = temp_store.list_quiz_results("u1")
    assert len(results) == 2
    assert {row["score"] for row in results} == {2.0, 3.0}
    assert all(row["quiz_type"] == "onboarding" and row["total_questions"] == 3 for row in results)


def test_learning_goals_skip_blank_text(temp_store):
    written = temp_store.insert_learning_goals(
        "u1",
        [{"text": "Sell crafts", "category": "business"}, {"text": "  "}, {"category": "skill"}],
    )
    assert written == 1
    goals = temp_store.list_learning_goals("u1")
    assert [(g["goal_text"], g["goal_category"]) for g in goals] == [("Sell crafts", "business")]


def test_career_path_upsert_creates_then_updates_user(temp_store):
    temp_store.update_career_path("u1", "Tech")
    created = temp_store.get_user("u1")
    temp_store.update_career_path("u1", "Food")
    updated = temp_store.get_user("u1")

    assert created["career_path"] == "Tech"
    assert updated["career_path"] == "Food"
    assert updated["created_at"] == created["created_at"]
    assert updated["role"] == "student"


def test_decision_score_constraint_raises_persistence_error(temp_store):
    with pytest.raises(PersistenceError):
        temp_store.insert_decision("u1", "scn", "opt", 1, "text", 101, {"leadership": 1})
    assert temp_store.list_decisions("u1") == []


def test_decisions_listed_newest_first(temp_store):
    for round_number in (1, 2, 3):
        temp_store.insert_decision("u1", "scn", f"opt-{round_number}", round_number, "ok", 70, {"x": 1})

    decisions = temp_store.list_decisions("u1", limit=2)
    assert [d["round_number"] for d in decisions] == [3, 2]
    assert decisions[0]["skills_gained"] == {"x": 1}


def test_progress_delta_creates_and_accumulates(temp_store):
    first = temp_store.apply_progress_delta("u1", "leadership", 3, 80)
    assert (first["skill_level"], first["total_scenarios_completed"], first["average_score"]) == (3, 1, 80.0)

    second = temp_store.apply_progress_delta("u1", "leadership", 2, 60)
    assert second["skill_level"] == 5
    assert second["total_scenarios_completed"] == 2
    assert second["average_score"] == pytest.approx(70.0)


def test_reads_against_missing_schema_raise_persistence_error(tmp_path):
    store = Store(str(tmp_path / "empty.db"))
    try:
        with pytest.raises(PersistenceError):
            store.get_profile("u1")
    finally:
        store.close()


def test_init_creates_parent_directory(tmp_path):
    store = Store(str(tmp_path / "nested" / "dir" / "app.db"))
    try:
        store.init()
        assert (tmp_path / "nested" / "dir" / "app.db").exists()
    finally:
        store.close()


def test_out_of_range_integers_raise_persistence_error(temp_store):
    with pytest.raises(PersistenceError):
        temp_store.insert_decision("u1", "scn", "opt", 10**20, "text", 90, {"leadership": 1})
    with pytest.raises(PersistenceError):
        temp_store.apply_progress_delta("u1", "leadership", 10**20, 80)
    assert temp_store.list_decisions("u1") == []
    assert temp_store.get_progress("u1", "leadership") is None


def test_decision_stats_cover_every_decision(temp_store):
    scores = [60, 70, 80, 90] * 3
    for idx, score in enumerate(scores, start=1):
        temp_store.insert_decision("u1", "scn", "opt", idx, "ok", score, {"x": 1})

    assert temp_store.decision_stats("u1") == {"total": 12, "average": pytest.approx(75.0)}
    assert temp_store.decision_stats("nobody") == {"total": 0, "average": 0.0}


def test_session_created_at_round_one(temp_store):
    session = temp_store.create_session("s-1", "u1", "CEO Leadership Simulation", session_data={"career_path": "ceo"})

    assert session["status"] == "ongoing"
    assert (session["current_round"], session["total_rounds"], session["progress"]) == (1, 5, 0)
    assert session["session_data"] == {"career_path": "ceo"}
    assert session["completed_at"] is None


def test_advance_session_moves_forward_and_completes(temp_store):
    temp_store.create_session("s-1", "u1", "Sim", total_rounds=3)

    first = temp_store.advance_session("s-1", 1)
    assert (first["current_round"], first["progress"], first["status"]) == (2, 67, "ongoing")

    replay = temp_store.advance_session("s-1", 1)
    assert replay["current_round"] == 2

    last = temp_store.advance_session("s-1", 3)
    assert (last["current_round"], last["progress"], last["status"]) == (3, 100, "completed")
    assert last["completed_at"] is not None

    assert temp_store.advance_session("s-1", 3) is None
    assert temp_store.advance_session("missing", 1) is None


def test_list_sessions_newest_first(temp_store):
    temp_store.create_session("s-1", "u1", "First")
    temp_store.create_session("s-2", "u1", "Second")
    temp_store.create_session("s-3", "u2", "Other")

    assert [s["id"] for s in temp_store.list_sessions("u1")] == ["s-2", "s-1"]
