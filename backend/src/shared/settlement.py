"""
Settlement of task submissions.

A submission is checked for eligibility, validated, and, when correct, paid
out of the task's escrow into the submitter's points. All reads and writes for
one submission happen inside a single unit of work holding the task
exclusively, so submissions to the same task are strictly ordered while
submissions to different tasks run in parallel.
"""
import uuid
from datetime import datetime
from typing import Callable, Optional
from botocore.exceptions import BotoCoreError, ClientError
from .errors import (
    AlreadySubmitted,
    InsufficientEscrow,
    SelfSubmission,
    SettlementError,
    SettlementInternalError,
    TaskClosed,
    TaskExpired,
    TaskNotStarted,
)
from .logging import log_settlement, logger
from .models import SettlementResult, Submission, Task, TaskStatus, utc_now
from .validation import validate_answer


def check_eligibility(task: Task, user_id: str, now: datetime) -> None:
    """Raise the first eligibility violation for this user on this task."""
    if task.status != TaskStatus.OPEN:
        raise TaskClosed()
    if task.starts_at is not None and now < task.starts_at:
        raise TaskNotStarted()
    if task.ends_at is not None and now > task.ends_at:
        raise TaskExpired()
    if task.creator_id is not None and str(task.creator_id) == str(user_id):
        raise SelfSubmission()


class SettlementEngine:
    """Runs submit() against a store that hands out task units of work."""

    def __init__(self, store, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or utc_now

    def submit(self, task_id: str, user_id: str, answer: str) -> SettlementResult:
        """
        Settle one submission.

        Returns:
            SettlementResult for correct and incorrect answers

        Raises:
            SettlementError subclass for every rejection; storage failures
            surface as SettlementInternalError after a full rollback
        """
        user_id = str(user_id)
        try:
            with self.store.unit_of_work(task_id) as uow:
                return self._settle(uow, user_id, answer)
        except SettlementError as e:
            log_settlement("rejected", task_id, user_id, kind=e.error_kind)
            raise
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"Settlement failed task={task_id} user={user_id}: {e}")
            raise SettlementInternalError() from e
        except Exception as e:
            logger.exception(f"Unexpected settlement failure task={task_id} user={user_id}: {e}")
            raise SettlementInternalError() from e

    def _settle(self, uow, user_id: str, answer: str) -> SettlementResult:
        task = uow.task
        now = self.clock()

        check_eligibility(task, user_id, now)
        if uow.has_submission(user_id):
            raise AlreadySubmitted()

        is_correct = validate_answer(task.question_type, answer, task.correct_answer)

        if not is_correct:
            submission = self._new_submission(task, user_id, answer, False, 0, now)
            uow.record_submission(submission)
            uow.commit()
            log_settlement("incorrect", task.task_id, user_id)
            return SettlementResult(is_correct=False, awarded_points=0,
                                    submission_id=submission.submission_id)

        reward = int(task.reward_per_completion)
        escrow = int(task.escrow_balance)

        if escrow < reward:
            # Close without recording the losing submission
            uow.close_task()
            uow.commit()
            log_settlement("closed", task.task_id, user_id, escrow=escrow, reward=reward)
            raise InsufficientEscrow()

        submission = self._new_submission(task, user_id, answer, True, reward, now)
        uow.debit_escrow(reward)
        uow.record_submission(submission)
        uow.credit_points(user_id, reward)

        correct_count = uow.count_correct_submissions() + 1
        if correct_count >= task.max_acceptances:
            uow.close_task()

        uow.commit()
        log_settlement("awarded", task.task_id, user_id, points=reward, escrow=escrow - reward,
                       accepted=f"{correct_count}/{task.max_acceptances}")
        return SettlementResult(is_correct=True, awarded_points=reward,
                                submission_id=submission.submission_id)

    @staticmethod
    def _new_submission(task: Task, user_id: str, answer: str, is_correct: bool,
                        awarded_points: int, now: datetime) -> Submission:
        return Submission(
            submission_id=str(uuid.uuid4()),
            task_id=task.task_id,
            user_id=user_id,
            answer='' if answer is None else str(answer),
            is_correct=is_correct,
            awarded_points=awarded_points,
            validated_at=now,
        )
