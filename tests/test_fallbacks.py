import fallbacks
import prompts


def test_every_onboarding_step_has_canned_feedback():
    for step in prompts.ONBOARDING_STEPS:
        assert fallbacks.onboarding_feedback(step) == fallbacks.ONBOARDING_FEEDBACK[step]
    assert fallbacks.onboarding_feedback("unknown") == fallbacks.ONBOARDING_FEEDBACK["default"]
    assert fallbacks.onboarding_feedback(None) == fallbacks.ONBOARDING_FEEDBACK["default"]


def test_learning_path_is_complete_and_independent():
    first = fallbacks.learning_path("Agriculture", "beginner")
    first["modules"][0]["title"] = "changed"
    second = fallbacks.learning_path("Tech", "advanced")

    assert len(second["modules"]) == prompts.LEARNING_PATH_MODULES
    assert [m["id"] for m in second["modules"]] == [1, 2, 3, 4, 5]
    assert second["modules"][0]["title"] == "Foundation Building"
    assert "Tech" in second["description"] and "advanced" in second["description"]
    assert second["nextSteps"]


def test_quiz_questions_default_to_business_bank():
    questions = fallbacks.quiz_questions("Underwater Basket Weaving")
    assert questions == fallbacks.quiz_questions(fallbacks.DEFAULT_QUIZ_AREA)
    assert len(questions) == prompts.QUIZ_LENGTH
    for question in questions:
        assert 0 <= question["correctAnswer"] < len(question["options"])


def test_mentor_reply_is_nonempty():
    assert fallbacks.mentor_reply().strip()
