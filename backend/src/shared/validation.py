"""
Answer validation for question-type tasks.

Pure comparison, no I/O. Comparison policy per question type:
- mcq: exact match after trimming surrounding whitespace (case-sensitive)
- short: trimmed and case-folded match, no other normalization
"""
from typing import Any

from .models import QuestionType


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    return str(value)


def validate_answer(question_type: str, submitted_answer: Any, correct_answer: Any) -> bool:
    """
    Check a submitted answer against the task's expected answer.

    Args:
        question_type: 'mcq' or 'short'; anything else is compared like 'short'
        submitted_answer: Raw answer from the submitter
        correct_answer: Answer stored on the task

    Returns:
        True if the answer is accepted
    """
    submitted = _as_text(submitted_answer).strip()
    correct = _as_text(correct_answer).strip()

    if question_type == QuestionType.MCQ:
        return submitted == correct

    return submitted.casefold() == correct.casefold()
