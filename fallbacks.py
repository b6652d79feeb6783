"""Canned content served when the AI gateway cannot answer."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

ONBOARDING_FEEDBACK: Dict[str, str] = {
    "interest_selected": "Excellent choice! 🌟 You've picked an amazing field that's full of opportunities. We're excited to help you explore and grow in this area!",
    "quiz_completed": "Great job completing the quiz! 🧠 Remember, every expert was once a beginner. You're on the right path to learning amazing things!",
    "goals_set": "Fantastic goals! 🎯 Setting clear objectives is the first step to success. We'll help you achieve every single one of them!",
    "profile_complete": "Welcome to RE-Novate! 🚀 Your profile shows you're ready for an amazing learning adventure. Let's make your entrepreneurship dreams come true!",
    "default": "You're doing great! 🌟 Keep up the excellent work on your learning journey!",
}

MENTOR_REPLY = (
    "I'm having trouble connecting right now, but I'm still here for you! 🌱 "
    "Try asking again in a moment, and in the meantime think about one small step "
    "you could take today toward your business idea."
)

_LEARNING_PATH_MODULES: List[Dict[str, Any]] = [
    {
        "id": 1,
        "title": "Foundation Building",
        "description": "Learn the basic concepts and principles",
        "skills": ["Critical Thinking", "Problem Solving"],
        "scenarios": ["Market Research Challenge", "Customer Interview Practice"],
        "duration": "2-3 weeks",
    },
    {
        "id": 2,
        "title": "Practical Application",
        "description": "Apply your knowledge to real situations",
        "skills": ["Decision Making", "Analysis"],
        "scenarios": ["Business Case Study", "Resource Management"],
        "duration": "3-4 weeks",
    },
    {
        "id": 3,
        "title": "Advanced Concepts",
        "description": "Explore complex topics and strategies",
        "skills": ["Strategic Planning", "Innovation"],
        "scenarios": ["Competitive Analysis", "Growth Strategy"],
        "duration": "4-5 weeks",
    },
    {
        "id": 4,
        "title": "Leadership & Communication",
        "description": "Develop leadership and presentation skills",
        "skills": ["Leadership", "Communication"],
        "scenarios": ["Team Management", "Pitch Presentation"],
        "duration": "3-4 weeks",
    },
    {
        "id": 5,
        "title": "Real-World Project",
        "description": "Complete a comprehensive capstone project",
        "skills": ["Project Management", "Implementation"],
        "scenarios": ["Business Plan Creation", "Community Impact Project"],
        "duration": "5-6 weeks",
    },
]

DEFAULT_QUIZ_AREA = "Business & Management"

_QUIZ_QUESTIONS: Dict[str, List[Dict[str, Any]]] = {
    "Business & Management": [
        {
            "question": "What is the most important factor when starting a business?",
            "options": ["Having lots of money", "Understanding your customers", "Having a fancy office", "Being the smartest person"],
            "correctAnswer": 1,
            "explanation": "Understanding your customers helps you create products they actually want!",
        },
        {
            "question": "What does 'profit' mean in business?",
            "options": ["Money you borrow", "Money left after paying expenses", "Money you invest", "Money you save"],
            "correctAnswer": 1,
            "explanation": "Profit is what's left when you subtract all your costs from your income.",
        },
        {
            "question": "Why is teamwork important in business?",
            "options": ["It's not important", "Different people have different strengths", "It's required by law", "It makes work slower"],
            "correctAnswer": 1,
            "explanation": "Teams succeed because everyone brings unique skills and perspectives!",
        },
    ],
    "Technology & Innovation": [
        {
            "question": "What is innovation?",
            "options": ["Using old methods", "Creating new solutions to problems", "Copying others", "Avoiding change"],
            "correctAnswer": 1,
            "explanation": "Innovation is about finding creative new ways to solve problems!",
        },
        {
            "question": "How can technology help solve problems?",
            "options": ["It can't help", "By making tasks faster and easier", "Only for entertainment", "It creates more problems"],
            "correctAnswer": 1,
            "explanation": "Technology is a powerful tool that can make our lives better and solve real challenges.",
        },
        {
            "question": "What's the first step in creating a new app?",
            "options": ["Writing code", "Understanding what problem it solves", "Designing the interface", "Finding investors"],
            "correctAnswer": 1,
            "explanation": "Before building anything, you need to understand what problem you're solving for users.",
        },
    ],
}


def onboarding_feedback(step: Optional[str]) -> str:
    return ONBOARDING_FEEDBACK.get(step or "default", ONBOARDING_FEEDBACK["default"])


def mentor_reply() -> str:
    return MENTOR_REPLY


def learning_path(interest_area: str, skill_level: str) -> Dict[str, Any]:
    """Complete five-module path, personalised only in its description."""
    return {
        "title": "Your Personalized Learning Journey",
        "description": (
            f"Welcome to your {interest_area} learning adventure! We've created a path that "
            f"matches your {skill_level} level and will help you achieve your goals."
        ),
        "modules": copy.deepcopy(_LEARNING_PATH_MODULES),
        "nextSteps": "After completing this path, you'll be ready to take on advanced challenges and potentially mentor other students!",
    }


def quiz_questions(interest_area: Optional[str]) -> List[Dict[str, Any]]:
    questions = _QUIZ_QUESTIONS.get(interest_area or "", _QUIZ_QUESTIONS[DEFAULT_QUIZ_AREA])
    return copy.deepcopy(questions)
