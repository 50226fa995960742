"""
LLM Prompts for Quiz Question Generation.

Each prompt includes:
1. Quality rules for four-option multiple-choice items
2. The difficulty band the questions must target
3. Output format (JSON array)
4. A generation id so repeated requests for the same objective differ
"""
from __future__ import annotations

import random
import time

# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = """You are an expert educational assessment designer.
You create high-quality, pedagogically sound multiple-choice questions for
students aged 12 and up. Always respond with valid JSON only."""


# =============================================================================
# Question Prompt
# =============================================================================

QUESTION_PROMPT = """Create {count} high-quality multiple-choice questions about "{objective}" at {level} level.

IMPORTANT: Generate completely unique questions. Generation ID: {generation_id}

Requirements:
1. Each question should test understanding, not just memorization
2. Provide exactly 4 options: one correct answer and three plausible distractors
3. Distractors must be believable but clearly wrong to someone who understands the concept
4. All four options must be different from each other
5. Include a brief explanation of why the correct answer is right
6. Questions must match the {level} difficulty level

Format your response as a JSON array:
[
  {{
    "question": "Your question here",
    "correct_answer": "The correct answer",
    "distractors": ["Wrong answer 1", "Wrong answer 2", "Wrong answer 3"],
    "explanation": "Brief explanation of why the correct answer is right"
  }}
]

Learning Objective: "{objective}"
Difficulty: {level}
Number of questions: {count}"""


def difficulty_label(difficulty: float) -> str:
    """Map a 0-1 difficulty to the wording used in prompts."""
    if difficulty < 0.4:
        return "beginner"
    if difficulty < 0.7:
        return "intermediate"
    return "advanced"


def build_question_prompt(objective_text: str, difficulty: float, count: int) -> str:
    """Build the user prompt for one generation request."""
    generation_id = f"{int(time.time() * 1000)}-{random.randint(0, 999_999)}"
    return QUESTION_PROMPT.format(
        count=count,
        objective=objective_text,
        level=difficulty_label(difficulty),
        generation_id=generation_id,
    )


def get_system_prompt() -> str:
    """Get the system prompt shared by all providers."""
    return SYSTEM_PROMPT
