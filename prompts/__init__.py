"""Persona loading and prompt assembly for every AI-backed step."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

_PROMPT_DIR = Path(__file__).resolve().parent

ONBOARDING_STEPS = ("interest_selected", "quiz_completed", "goals_set", "profile_complete")

# Word ceilings per onboarding step; unknown steps get general encouragement.
WORD_LIMITS: Dict[str, int] = {
    "interest_selected": 100,
    "quiz_completed": 80,
    "goals_set": 100,
    "profile_complete": 150,
    "default": 80,
}

QUIZ_LENGTH = 3
LEARNING_PATH_MODULES = 5


@dataclass(frozen=True)
class Persona:
    """A system prompt plus the metadata logged alongside calls that use it."""

    id: str
    label: str
    prompt_version: str
    system_prompt: str


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str
    prompt_version: str


def _load_persona(path: Path) -> Persona:
    payload = json.loads(path.read_text(encoding="utf-8"))
    required = {"id", "label", "prompt_version", "system_prompt"}
    missing = sorted(required - payload.keys())
    if missing:
        raise ValueError(f"Persona file {path.name} missing keys: {', '.join(missing)}")
    return Persona(
        id=str(payload["id"]),
        label=str(payload["label"]),
        prompt_version=str(payload["prompt_version"]),
        system_prompt=str(payload["system_prompt"]),
    )


def _iter_persona_files(directory: Path) -> Iterable[Path]:
    for path in sorted(directory.glob("*.json")):
        if path.is_file():
            yield path


@lru_cache(maxsize=1)
def load_personas(directory: Path | None = None) -> Mapping[str, Persona]:
    base_dir = Path(directory) if directory else _PROMPT_DIR
    personas: Dict[str, Persona] = {}
    for file_path in _iter_persona_files(base_dir):
        personas[file_path.stem] = _load_persona(file_path)
    if not personas:
        raise RuntimeError(f"No persona definitions found in {base_dir}")
    return personas


def get_persona(name: str) -> Persona:
    personas = load_personas()
    try:
        return personas[name]
    except KeyError:
        raise KeyError(f"Unknown persona '{name}'. Available: {', '.join(sorted(personas))}") from None


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def goals_text(goals: Optional[Sequence[Mapping[str, Any]]], default: str) -> str:
    names = [_text(goal.get("text")) for goal in goals or () if isinstance(goal, Mapping)]
    names = [name for name in names if name]
    return ", ".join(names) if names else default


def build_onboarding_feedback(step: str, fields: Mapping[str, Any]) -> PromptPair:
    """Encouragement prompt for one onboarding step."""
    persona = get_persona("onboarding")
    interest = _text(fields.get("interest_area"))
    limit = WORD_LIMITS.get(step, WORD_LIMITS["default"])

    if step == "interest_selected":
        user = (
            f'A student just selected "{interest}" as their interest area. Provide encouraging '
            f"feedback about their choice and briefly explain why this field is exciting and "
            f"valuable in Liberia's growing economy. Keep it under {limit} words."
        )
    elif step == "quiz_completed":
        score = _text(fields.get("quiz_score"), "0")
        level = _text(fields.get("skill_level"), "beginner")
        user = (
            f'A student completed a knowledge quiz in "{interest}" and scored {score} out of '
            f"{QUIZ_LENGTH} ({level} level). Provide encouraging feedback about their performance, "
            f"regardless of score. Emphasize that everyone starts somewhere and this is just the "
            f"beginning of their learning journey. Keep it under {limit} words."
        )
    elif step == "goals_set":
        goals = goals_text(fields.get("goals"), "learning goals")
        user = (
            f'A student set these learning goals in "{interest}": {goals}. Provide encouraging '
            f"feedback about their goal-setting and briefly explain how these goals will help "
            f"them grow. Keep it under {limit} words."
        )
    elif step == "profile_complete":
        user = (
            "A student completed their onboarding profile:\n"
            f"- Interest: {interest}\n"
            f"- Skill Level: {_text(fields.get('skill_level'), 'not specified')}\n"
            f"- Motivation: {_text(fields.get('motivation'), 'not specified')}\n"
            f"- Aspirations: {_text(fields.get('aspirations'), 'not specified')}\n"
            f"- Learning Style: {_text(fields.get('learning_preference'), 'not specified')}\n\n"
            "Provide a personalized, encouraging message about their journey ahead. Mention "
            "specific aspects of their profile and how RE-Novate will help them achieve their "
            f"dreams. Keep it under {limit} words."
        )
    else:
        user = (
            "Provide general encouragement for a student starting their entrepreneurship "
            f'learning journey in "{interest}". Keep it under {limit} words.'
        )
    return PromptPair(system=persona.system_prompt, user=user, prompt_version=persona.prompt_version)


def build_learning_path(fields: Mapping[str, Any]) -> PromptPair:
    persona = get_persona("curriculum")
    user = f"""Create a personalized learning path for a Liberian secondary student with these details:

- Interest Area: {_text(fields.get('interest_area'))}
- Current Skill Level: {_text(fields.get('skill_level'))}
- Learning Goals: {goals_text(fields.get('goals'), 'general learning')}
- Learning Preference: {_text(fields.get('learning_preference'), 'not specified')}
- Motivation: {_text(fields.get('motivation'), 'not specified')}

Create a learning path with:
1. {LEARNING_PATH_MODULES} progressive learning modules (from basic to advanced)
2. Each module should have a clear title and brief description
3. Include practical activities relevant to Liberian context
4. Suggest 2-3 real-world scenarios for each module
5. Recommend skills they'll develop

Format as JSON:
{{
  "learningPath": {{
    "title": "Your Personalized Learning Journey",
    "description": "Brief motivating description",
    "modules": [
      {{
        "id": 1,
        "title": "Module Title",
        "description": "What they'll learn",
        "skills": ["skill1", "skill2"],
        "scenarios": ["scenario1", "scenario2"],
        "duration": "estimated time"
      }}
    ],
    "nextSteps": "What to do after completing the path"
  }}
}}

Only return the JSON, no other text."""
    return PromptPair(system=persona.system_prompt, user=user, prompt_version=persona.prompt_version)


def build_mentor_chat(message: str, *, username: Optional[str] = None, career_path: Optional[str] = None) -> PromptPair:
    """System prompt carries the student context; prior turns travel as chat messages."""
    persona = get_persona("mentor")
    system = (
        f"{persona.system_prompt}\n\n"
        "STUDENT CONTEXT:\n"
        f"- Name: {_text(username, 'Student')}\n"
        f"- Career Path: {_text(career_path, 'Exploring')}\n\n"
        "Respond as Noni, keeping in mind this student's background and the conversation so far. "
        "Be helpful, encouraging, and focused on their learning journey."
    )
    return PromptPair(system=system, user=_text(message), prompt_version=persona.prompt_version)


def build_personalized_quiz(interest_area: str, difficulty: str = "beginner") -> PromptPair:
    persona = get_persona("quiz")
    user = f"""Create {QUIZ_LENGTH} multiple-choice questions for Liberian secondary students about "{_text(interest_area)}".

Requirements:
- Difficulty level: {_text(difficulty, 'beginner')}
- Questions should be relevant to Liberian context when possible
- Each question should have 4 options (A, B, C, D)
- Include brief explanations for correct answers
- Make questions practical and engaging for teenagers
- Focus on foundational concepts, not advanced theory

Format your response as a JSON array with this structure:
[
  {{
    "question": "Question text here?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": 0,
    "explanation": "Brief explanation of why this is correct"
  }}
]

Only return the JSON array, no other text."""
    return PromptPair(system=persona.system_prompt, user=user, prompt_version=persona.prompt_version)
