"""Pydantic request bodies, AI output models and helper utilities."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import ValidationError as RequestValidationError

MAX_ROUND = 10_000

__all__ = [
    "GoalInput",
    "ChatTurn",
    "LearningPathBody",
    "MentorChatBody",
    "OnboardingFeedbackBody",
    "PersonalizedQuizBody",
    "TrackInteractionBody",
    "SaveProfileBody",
    "SimulationSubmitBody",
    "StartSessionBody",
    "LearningModule",
    "LearningPath",
    "LearningPathEnvelope",
    "QuizQuestion",
    "require_fields",
    "parse_json_safe",
]


class _CamelBody(BaseModel):
    """Request bodies arrive in camelCase; required fields are checked by the route."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GoalInput(BaseModel):
    text: Optional[str] = None
    category: Optional[str] = None


class ChatTurn(BaseModel):
    role: str = "user"
    content: str = ""


class LearningPathBody(_CamelBody):
    interest_area: Optional[str] = Field(default=None, alias="interestArea")
    skill_level: Optional[str] = Field(default=None, alias="skillLevel")
    goals: Optional[List[GoalInput]] = None
    learning_preference: Optional[str] = Field(default=None, alias="learningPreference")
    motivation: Optional[str] = None


class MentorChatBody(_CamelBody):
    message: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    username: Optional[str] = None
    career_path: Optional[str] = Field(default=None, alias="careerPath")
    conversation_history: Optional[List[ChatTurn]] = Field(default=None, alias="conversationHistory")


class OnboardingFeedbackBody(_CamelBody):
    interest_area: Optional[str] = Field(default=None, alias="interestArea")
    step: Optional[str] = None
    quiz_score: Optional[float] = Field(default=None, alias="quizScore")
    skill_level: Optional[str] = Field(default=None, alias="skillLevel")
    goals: Optional[List[GoalInput]] = None
    motivation: Optional[str] = None
    aspirations: Optional[str] = None
    learning_preference: Optional[str] = Field(default=None, alias="learningPreference")


class PersonalizedQuizBody(_CamelBody):
    interest_area: Optional[str] = Field(default=None, alias="interestArea")
    difficulty: str = "beginner"


class TrackInteractionBody(_CamelBody):
    user_id: Optional[str] = Field(default=None, alias="userId")
    interaction_type: Optional[str] = Field(default=None, alias="interactionType")
    context: Optional[Dict[str, Any]] = None
    ai_response: Optional[str] = Field(default=None, alias="aiResponse")
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class SaveProfileBody(_CamelBody):
    user_id: Optional[str] = Field(default=None, alias="userId")
    interest_area: Optional[str] = Field(default=None, alias="interestArea")
    avatar: Optional[Dict[str, Any]] = None
    quiz_score: Optional[float] = Field(default=None, alias="quizScore", ge=0)
    skill_level: Optional[str] = Field(default=None, alias="skillLevel")
    goals: Optional[List[GoalInput]] = None
    motivation: Optional[str] = None
    aspirations: Optional[str] = None
    learning_preference: Optional[str] = Field(default=None, alias="learningPreference")


class StartSessionBody(_CamelBody):
    user_id: Optional[str] = Field(default=None, alias="userId")
    total_rounds: int = Field(default=5, alias="totalRounds", ge=1, le=20)


class SimulationSubmitBody(_CamelBody):
    option_id: Optional[str] = Field(default=None, alias="optionId")
    scenario_id: Optional[str] = Field(default=None, alias="scenarioId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    round: Optional[int] = Field(default=None, ge=1, le=MAX_ROUND)
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class LearningModule(BaseModel):
    id: int
    title: str
    description: str
    skills: List[str] = Field(default_factory=list)
    scenarios: List[str] = Field(default_factory=list)
    duration: Optional[str] = None


class LearningPath(BaseModel):
    title: str
    description: str
    modules: List[LearningModule] = Field(min_length=1)
    nextSteps: Optional[str] = None


class LearningPathEnvelope(BaseModel):
    learningPath: LearningPath


class QuizQuestion(BaseModel):
    question: str
    options: List[str] = Field(min_length=2)
    correctAnswer: int = Field(ge=0)
    explanation: Optional[str] = None


def require_fields(body: BaseModel, names: Sequence[str], message: Optional[str] = None) -> None:
    """Raise a 400-mapped error when any of ``names`` is absent or blank."""
    missing = []
    for name in names:
        value = getattr(body, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            field = type(body).model_fields[name]
            missing.append(field.alias or name)
    if missing:
        raise RequestValidationError(message or f"Missing required fields: {', '.join(missing)}")


_T = TypeVar("_T", bound=BaseModel)


def _find_first_json_object(text: str) -> tuple[str, int, int]:
    start = text.find("{")
    while start != -1:
        depth = 0
        for idx in range(start, len(text)):
            char = text[idx]
            if char == "{" and (idx == 0 or text[idx - 1] != "\\"):
                depth += 1
            elif char == "}" and (idx == 0 or text[idx - 1] != "\\"):
                depth -= 1
                if depth == 0:
                    candidate = text[start : idx + 1]
                    try:
                        json.loads(candidate)
                    except ValueError:
                        break
                    return candidate, start, idx + 1
        start = text.find("{", start + 1)
    raise ValueError("No JSON object found in provided text")


def parse_json_safe(text: str, model: Type[_T]) -> _T:
    """Parse ``text`` into ``model`` with a fallback JSON extraction pass."""

    first_error: Exception | None = None
    try:
        return model.model_validate_json(text)
    except (ValidationError, ValueError, TypeError) as exc:
        first_error = exc

    try:
        snippet, _, _ = _find_first_json_object(text)
    except ValueError:
        if first_error:
            raise first_error
        raise

    try:
        return model.model_validate_json(snippet)
    except (ValidationError, ValueError):
        if first_error:
            raise first_error
        raise
