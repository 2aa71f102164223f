"""
Settlement error taxonomy.

Every rejection carries a stable ``error_kind`` for callers, the HTTP status the
API layer answers with, and a public message that never includes storage details.
"""


class SettlementError(Exception):
    error_kind = 'InternalError'
    status_code = 500
    message = 'internal error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class TaskNotFound(SettlementError):
    error_kind = 'NotFound'
    status_code = 404
    message = 'task not found'


class TaskNotEligible(SettlementError):
    """Task state, timing or duplicate-submission violation. Nothing is persisted."""
    error_kind = 'NotEligible'
    status_code = 400
    message = 'task is not open'


class TaskClosed(TaskNotEligible):
    error_kind = 'TaskClosed'
    message = 'task is not open'


class TaskNotStarted(TaskNotEligible):
    error_kind = 'NotStarted'
    message = 'task not started yet'


class TaskExpired(TaskNotEligible):
    error_kind = 'Expired'
    message = 'task expired'


class SelfSubmission(TaskNotEligible):
    error_kind = 'SelfSubmission'
    message = 'creator cannot submit their own task'


class AlreadySubmitted(TaskNotEligible):
    error_kind = 'AlreadySubmitted'
    message = 'user already submitted to this task'


class InsufficientEscrow(SettlementError):
    """Escrow cannot cover the reward. The task has been closed."""
    error_kind = 'InsufficientEscrow'
    status_code = 400
    message = 'insufficient escrow to pay reward; task closed'


class TaskBusy(SettlementError):
    """Task lease could not be acquired within the configured wait."""
    error_kind = 'Busy'
    status_code = 409
    message = 'task is busy, retry later'


class SettlementInternalError(SettlementError):
    error_kind = 'InternalError'
    status_code = 500
    message = 'internal error'
