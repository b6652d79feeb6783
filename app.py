# app.py - RE-Novate learning backend v1.0.0
# - Onboarding feedback, learning paths, placement quiz and mentor chat via the AI gateway
# - Canned fallbacks whenever the gateway fails; responses carry fallback=true
# - Simulation decisions scored locally and folded into per-skill progress
# - Simulation sessions advance one round per submission and complete after the last
# - Serve with an ASGI factory: uvicorn app:create_app --factory

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as ModelValidationError

import errors
import fallbacks
import prompts
from config import Settings, validate_environment
from db import Store
from engines.onboarding import save_onboarding_profile
from engines.progress import ProgressUpdater
from engines.sessions import advance, check_round, start_session
from engines.scoring import LocalDecisionScorer
from gateway import AIGateway
from schemas import (
    LearningPathBody,
    LearningPathEnvelope,
    MentorChatBody,
    OnboardingFeedbackBody,
    PersonalizedQuizBody,
    QuizQuestion,
    SaveProfileBody,
    SimulationSubmitBody,
    StartSessionBody,
    TrackInteractionBody,
    parse_json_safe,
    require_fields,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _store(request: Request) -> Store:
    return request.app.state.store


def _gateway(request: Request) -> AIGateway:
    return request.app.state.gateway


def _scorer(request: Request) -> LocalDecisionScorer:
    return request.app.state.scorer


def _require_query(value: Optional[str], name: str) -> str:
    if value is None or not value.strip():
        raise errors.ValidationError(f"{name} required")
    return value.strip()


def _log_interaction(store: Store, user_ref: str, interaction_type: str, ai_response: str, **kwargs: Any) -> bool:
    try:
        store.log_interaction(user_ref, interaction_type, ai_response, **kwargs)
        return True
    except errors.PersistenceError as exc:
        logger.warning("Could not log %s interaction for %s: %s", interaction_type, user_ref, exc)
        return False


# ---------- AI ----------
@router.post("/ai/learning-path")
def learning_path(request: Request, body: LearningPathBody):
    require_fields(body, ["interest_area", "skill_level"], "Interest area and skill level are required")
    gateway = _gateway(request)
    prompt = prompts.build_learning_path(body.model_dump())
    try:
        text = gateway.complete(
            prompt.system,
            prompt.user,
            gateway.profile("learning_path"),
            prompt_version=prompt.prompt_version,
        )
        try:
            envelope = parse_json_safe(text, LearningPathEnvelope)
        except (ModelValidationError, ValueError) as exc:
            raise errors.MalformedResponseError(f"Invalid learning path JSON: {exc}") from exc
        return {"learningPath": envelope.learningPath.model_dump(), "success": True}
    except errors.AIGatewayError as exc:
        logger.warning("Learning path fallback engaged: %s", exc)
        return {
            "learningPath": fallbacks.learning_path(body.interest_area, body.skill_level),
            "success": True,
            "fallback": True,
        }
    except Exception as exc:
        logger.exception("AI learning path error")
        raise errors.UnknownError("Failed to generate learning path") from exc


@router.post("/ai/mentor-chat")
def mentor_chat(request: Request, body: MentorChatBody):
    require_fields(body, ["message", "user_id"], "Message and user ID are required")
    gateway = _gateway(request)
    history = [turn.model_dump() for turn in body.conversation_history or ()]
    prompt = prompts.build_mentor_chat(body.message, username=body.username, career_path=body.career_path)
    degraded = False
    try:
        reply = gateway.complete(
            prompt.system,
            prompt.user,
            gateway.profile("mentor_chat"),
            history=history,
            prompt_version=prompt.prompt_version,
        )
    except errors.AIGatewayError as exc:
        logger.warning("Mentor chat fallback engaged for %s: %s", body.user_id, exc)
        reply = fallbacks.mentor_reply()
        degraded = True
    except Exception as exc:
        logger.exception("Error in mentor chat")
        raise errors.UnknownError("I'm having trouble connecting right now. Please try again!") from exc

    logged = _log_interaction(
        _store(request),
        body.user_id.strip(),
        "mentor_chat",
        reply,
        context={
            "user_message": body.message,
            "career_path": body.career_path,
            "conversation_length": len(history),
            "fallback": degraded,
        },
        participant_id=body.username,
    )
    payload: dict[str, Any] = {"response": reply, "success": True, "logged": logged}
    if degraded:
        payload["fallback"] = True
    return payload


@router.post("/ai/onboarding-feedback")
def onboarding_feedback(request: Request, body: OnboardingFeedbackBody):
    require_fields(body, ["interest_area", "step"])
    gateway = _gateway(request)
    step = body.step.strip()
    prompt = prompts.build_onboarding_feedback(step, body.model_dump())
    try:
        feedback = gateway.complete(
            prompt.system,
            prompt.user,
            gateway.profile("onboarding_feedback"),
            prompt_version=prompt.prompt_version,
        )
        return {"feedback": feedback, "success": True}
    except errors.AIGatewayError as exc:
        logger.warning("Onboarding feedback fallback engaged for step %s: %s", step, exc)
        return {"feedback": fallbacks.onboarding_feedback(step), "success": True, "fallback": True}
    except Exception as exc:
        logger.exception("AI feedback error")
        raise errors.UnknownError("Failed to generate feedback") from exc


@router.post("/ai/personalized-quiz")
def personalized_quiz(request: Request, body: PersonalizedQuizBody):
    require_fields(body, ["interest_area"], "Interest area is required")
    gateway = _gateway(request)
    interest_area = body.interest_area.strip()
    prompt = prompts.build_personalized_quiz(interest_area, body.difficulty)
    try:
        data = gateway.complete_json(
            prompt.system,
            prompt.user,
            gateway.profile("personalized_quiz"),
            prompt_version=prompt.prompt_version,
        )
        if not isinstance(data, list) or len(data) != prompts.QUIZ_LENGTH:
            raise errors.MalformedResponseError("Invalid question format")
        try:
            questions = [QuizQuestion.model_validate(item).model_dump() for item in data]
        except ModelValidationError as exc:
            raise errors.MalformedResponseError(f"Invalid question format: {exc}") from exc
        return {"questions": questions, "success": True}
    except errors.AIGatewayError as exc:
        logger.warning("Quiz fallback engaged for %s: %s", interest_area, exc)
        return {"questions": fallbacks.quiz_questions(interest_area), "success": True, "fallback": True}
    except Exception as exc:
        logger.exception("AI quiz generation error")
        raise errors.UnknownError("Failed to generate quiz") from exc


@router.post("/ai/track-interaction")
def track_interaction(request: Request, body: TrackInteractionBody):
    require_fields(body, ["user_id", "interaction_type", "ai_response"])
    try:
        row = _store(request).log_interaction(
            body.user_id.strip(),
            body.interaction_type.strip(),
            body.ai_response,
            context=body.context,
            rating=body.rating,
        )
    except errors.PersistenceError as exc:
        logger.warning("AI interaction tracking error: %s", exc)
        return {"success": False, "data": None, "message": "AI interaction could not be recorded"}
    except Exception as exc:
        logger.exception("Track AI interaction error")
        raise errors.UnknownError("Failed to track AI interaction") from exc
    return {"success": True, "data": row, "message": "AI interaction tracked successfully"}


# ---------- Onboarding ----------
@router.post("/onboarding/save-profile")
def save_profile(request: Request, body: SaveProfileBody):
    require_fields(body, ["user_id", "interest_area"], "User ID and interest area are required")
    try:
        result = save_onboarding_profile(_store(request), body)
    except errors.PersistenceError as exc:
        raise errors.PersistenceError("Failed to save profile", status_code=500) from exc
    except Exception as exc:
        logger.exception("Save profile error")
        raise errors.UnknownError("Failed to save profile") from exc
    message = (
        "Onboarding profile saved successfully"
        if result.complete
        else "Onboarding profile saved; some related records could not be stored"
    )
    return {
        "success": True,
        "profile": result.profile,
        "steps": result.steps_payload(),
        "message": message,
    }


@router.get("/onboarding/profile")
def get_profile(request: Request, user_id: Optional[str] = Query(default=None, alias="userId")):
    user_id = _require_query(user_id, "userId")
    store = _store(request)
    profile = store.get_profile(user_id)
    if profile is None:
        raise errors.NotFoundError("profile not found")
    return {"success": True, "profile": profile, "goals": store.list_learning_goals(user_id)}


# ---------- Simulation ----------
@router.post("/simulation/session")
def simulation_start_session(request: Request, body: StartSessionBody):
    require_fields(body, ["user_id"], "User ID is required")
    try:
        session = start_session(_store(request), body.user_id.strip(), total_rounds=body.total_rounds)
    except errors.PersistenceError as exc:
        raise errors.PersistenceError("Failed to create simulation session", status_code=500) from exc
    except Exception as exc:
        logger.exception("Start session error")
        raise errors.UnknownError("Failed to create simulation session") from exc
    return {"success": True, "session": session}


@router.get("/simulation/sessions")
def simulation_list_sessions(
    request: Request,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    limit: int = Query(default=20, ge=1, le=100),
):
    user_id = _require_query(user_id, "userId")
    return {"success": True, "sessions": _store(request).list_sessions(user_id, limit=limit)}


@router.post("/simulation/submit")
def simulation_submit(request: Request, body: SimulationSubmitBody):
    require_fields(body, ["option_id", "scenario_id", "user_id", "round"])
    store = _store(request)
    user_id = body.user_id.strip()
    session_id = (body.session_id or "").strip() or None
    if session_id:
        check_round(store, session_id, user_id, body.round)
    try:
        outcome = _scorer(request).score(body.option_id, body.scenario_id, body.round)

        decision_saved = True
        try:
            store.insert_decision(
                user_id,
                body.scenario_id,
                body.option_id,
                body.round,
                outcome.ai_feedback,
                outcome.outcome_score,
                outcome.skills_gained,
                session_id=session_id,
            )
        except errors.PersistenceError as exc:
            logger.warning("Error saving decision for %s: %s", user_id, exc)
            decision_saved = False

        progress = ProgressUpdater(store).apply(user_id, outcome.skills_gained, outcome.outcome_score)
        session = advance(store, session_id, body.round) if session_id else None
    except Exception as exc:
        logger.exception("Error processing simulation submission")
        raise errors.UnknownError("Failed to process submission") from exc

    return {
        "success": True,
        "feedback": outcome.as_payload(),
        "persisted": {"decision": decision_saved, "progress": progress.as_payload()},
        "session": session,
    }


@router.get("/simulation/decisions")
def list_decisions(
    request: Request,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    limit: int = Query(default=10, ge=1, le=100),
):
    user_id = _require_query(user_id, "userId")
    return {"success": True, "decisions": _store(request).list_decisions(user_id, limit=limit)}


# ---------- Progress ----------
@router.get("/progress")
def get_progress(request: Request, user_id: Optional[str] = Query(default=None, alias="userId")):
    user_id = _require_query(user_id, "userId")
    return {"success": True, "progress": ProgressUpdater(_store(request)).summary(user_id)}


@router.get("/dashboard")
def dashboard(request: Request, user_id: Optional[str] = Query(default=None, alias="userId")):
    user_id = _require_query(user_id, "userId")
    store = _store(request)
    progress = store.list_progress(user_id)
    decisions = store.list_decisions(user_id, limit=10)
    totals = store.decision_stats(user_id)
    return {
        "success": True,
        "profile": store.get_profile(user_id),
        "progress": progress,
        "recentDecisions": decisions,
        "sessions": store.list_sessions(user_id, limit=5),
        "stats": {
            "averageScore": round(totals["average"]),
            "decisionsRecorded": totals["total"],
            "skillsTracked": len(progress),
            "totalSkillPoints": sum(row["skill_level"] for row in progress),
        },
    }


# ---------- Error envelopes ----------
async def _renovate_error_handler(_: Request, exc: errors.RenovateError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _request_validation_handler(_: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[Store] = None,
    gateway: Optional[AIGateway] = None,
    scorer: Optional[LocalDecisionScorer] = None,
) -> FastAPI:
    """Build the application with explicit collaborators.

    Anything not passed in is constructed from ``settings`` (validated from the
    environment when omitted).
    """
    settings = settings or validate_environment()
    store = store or Store(settings.db_path)
    gateway = gateway or AIGateway(settings)
    scorer = scorer or LocalDecisionScorer()

    @asynccontextmanager
    async def _lifespan(_: FastAPI):
        try:
            store.init()
            logger.info(
                "RE-Novate backend ready | db=%s | ai_enabled=%s", store.path, settings.ai_enabled
            )
            yield
        except Exception as e:
            logger.error("Failed to initialize application: %s", str(e), exc_info=True)
            raise
        finally:
            store.close()

    application = FastAPI(title="RE-Novate learning backend", version="1.0.0", lifespan=_lifespan)
    application.state.settings = settings
    application.state.store = store
    application.state.gateway = gateway
    application.state.scorer = scorer
    application.add_exception_handler(errors.RenovateError, _renovate_error_handler)
    application.add_exception_handler(RequestValidationError, _request_validation_handler)
    application.include_router(router)

    @application.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return application

