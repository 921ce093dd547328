"""
Assessment scoring

Questions come from the CMS config; answers map question id -> answer.
Choice questions (`multiple`, `boolean`) are answered with the option index and
score that option's configured value. `scale` (1-5) and `scale10` (1-10)
answers are normalized to 0-100. Each answered question counts with its weight;
unanswered questions are left out, and a zero total weight scores 0.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

CHOICE_TYPES = ("multiple", "boolean")
SCALE_RANGES = {"scale": 5, "scale10": 10}


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def question_weight(question: dict) -> float:
    weight = _as_number(question.get("weight"))
    return 1.0 if weight is None else weight


def score_question(question: dict, answer: Any) -> float:
    """0-100 contribution of a single answered question (before weighting)"""
    question_type = question.get("questionType")

    if question_type in CHOICE_TYPES:
        index = _as_number(answer)
        options = question.get("options") or []
        if index is None or not index.is_integer() or not 0 <= int(index) < len(options):
            return 0.0
        option = options[int(index)] or {}
        return _as_number(option.get("score")) or 0.0

    if question_type in SCALE_RANGES:
        value = _as_number(answer)
        if value is None:
            return 0.0
        points = SCALE_RANGES[question_type]
        return _clamp((value - 1) / (points - 1) * 100)

    logger.warning(f"Unknown question type '{question_type}' on question {question.get('_id')}")
    return 0.0


def _weighted(questions: list[dict], answers: dict) -> tuple[float, float]:
    total_score = 0.0
    total_weight = 0.0
    for question in questions or []:
        answer = answers.get(question.get("_id"))
        if answer is None:
            continue
        weight = question_weight(question)
        total_score += score_question(question, answer) * weight
        total_weight += weight
    return total_score, total_weight


def calculate_score(answers: dict, config: dict) -> float:
    """Overall weighted score across every category"""
    total_score = 0.0
    total_weight = 0.0
    for category in config.get("categories") or []:
        category_score, category_weight = _weighted(category.get("questions"), answers)
        total_score += category_score
        total_weight += category_weight
    return total_score / total_weight if total_weight > 0 else 0.0


def calculate_category_scores(answers: dict, config: dict) -> dict[str, float]:
    """Weighted score per category, keyed by category title"""
    scores = {}
    for category in config.get("categories") or []:
        category_score, category_weight = _weighted(category.get("questions"), answers)
        title = category.get("title") or category.get("_id") or "Uncategorized"
        scores[title] = category_score / category_weight if category_weight > 0 else 0.0
    return scores


def find_recommendation(score: float, recommendations: Optional[list[dict]]) -> Optional[dict]:
    """First tier whose scoreRange contains the score (bounds inclusive)"""
    for recommendation in recommendations or []:
        score_range = recommendation.get("scoreRange") or {}
        low = _as_number(score_range.get("min"))
        high = _as_number(score_range.get("max"))
        if low is None or high is None:
            continue
        if low <= score <= high:
            return recommendation
    return None
