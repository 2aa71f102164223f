"""
Data models and status constants for the micro-reward platform.
Task lifecycle: Open → (escrow exhausted or acceptances reached) → Closed
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TaskStatus:
    """Task lifecycle statuses. Closing is one-way."""
    OPEN = 'open'
    CLOSED = 'closed'


class QuestionType:
    """Supported question types."""
    MCQ = 'mcq'
    SHORT = 'short'

    ALL = (MCQ, SHORT)


class TaskKind:
    """Who authored the task."""
    OFFICIAL = 'official'  # platform-authored, no creator
    USER = 'user'


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as stored on task items.
    Naive values are taken as UTC. Returns None for empty values.
    """
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Task:
    task_id: str
    question: str
    question_type: str
    correct_answer: str
    reward_per_completion: int
    max_acceptances: int
    escrow_balance: int
    status: str
    creator_id: Optional[str] = None
    choices: Optional[List[Any]] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    @property
    def is_official(self) -> bool:
        return self.creator_id is None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Task':
        """Build a Task from a DynamoDB item. Numeric attributes arrive as Decimal."""
        creator_id = item.get('creatorId')
        return cls(
            task_id=item['taskId'],
            question=item.get('question', ''),
            question_type=item.get('questionType', QuestionType.SHORT),
            correct_answer=item.get('correctAnswer', ''),
            reward_per_completion=int(item.get('rewardPerCompletion', 0)),
            max_acceptances=int(item.get('maxAcceptances', 1)),
            escrow_balance=int(item.get('escrowBalance', 0)),
            status=item.get('status', TaskStatus.OPEN),
            creator_id=str(creator_id) if creator_id is not None else None,
            choices=item.get('choices'),
            starts_at=parse_timestamp(item.get('startsAt')),
            ends_at=parse_timestamp(item.get('endsAt')),
        )


@dataclass
class Submission:
    submission_id: str
    task_id: str
    user_id: str
    answer: str
    is_correct: bool
    awarded_points: int
    validated_at: datetime

    def to_item(self) -> Dict[str, Any]:
        return {
            'taskId': self.task_id,
            'userId': self.user_id,
            'submissionId': self.submission_id,
            'answer': self.answer,
            'isCorrect': self.is_correct,
            'awardedPoints': self.awarded_points,
            'validatedAt': self.validated_at.isoformat(),
        }


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a settled submission."""
    is_correct: bool
    awarded_points: int
    submission_id: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return {
            'success': True,
            'is_correct': self.is_correct,
            'awarded_points': self.awarded_points,
        }
