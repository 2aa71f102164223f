"""
Create Official Task Handler.
Creates a platform-authored task (no creator) open for submissions.
POST /admin/tasks/official
Header: X-Admin-Secret
"""
import uuid
import datetime
from shared.auth import has_admin_secret
from shared.config import config
from shared.dynamo import put_item
from shared.logging import logger, log_event
from shared.models import QuestionType, TaskKind, TaskStatus, parse_timestamp
from shared.utils import error_response, format_response, get_http_method, parse_body


def _non_negative_int(value, name, minimum=0):
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f'{name} must be an integer >= {minimum}')
    return value


def _timestamp(value, name):
    if value is None or value == '':
        return None
    try:
        return parse_timestamp(str(value)).isoformat()
    except ValueError:
        raise ValueError(f'{name} must be an ISO-8601 timestamp')


def build_task_item(body: dict, task_id: str, created_at: str) -> dict:
    """
    Validate the request body and build the Task item.

    Raises:
        ValueError with a client-facing message when the body is invalid
    """
    question = body.get('question')
    question_type = body.get('question_type')
    correct_answer = body.get('correct_answer')

    if not question or not question_type or correct_answer is None or str(correct_answer).strip() == '':
        raise ValueError('question, question_type and correct_answer are required')
    if question_type not in QuestionType.ALL:
        raise ValueError(f"question_type must be one of {', '.join(QuestionType.ALL)}")

    choices = body.get('choices')
    if choices is not None and not isinstance(choices, list):
        raise ValueError('choices must be a list')

    starts_at = _timestamp(body.get('starts_at'), 'starts_at')
    ends_at = _timestamp(body.get('ends_at'), 'ends_at')
    if starts_at and ends_at and parse_timestamp(ends_at) < parse_timestamp(starts_at):
        raise ValueError('ends_at must not be before starts_at')

    item = {
        'taskId': task_id,
        'creatorId': None,
        'type': TaskKind.OFFICIAL,
        'question': str(question),
        'questionType': question_type,
        'correctAnswer': str(correct_answer),
        'rewardPerCompletion': _non_negative_int(body.get('reward_per_completion', 0), 'reward_per_completion'),
        'maxAcceptances': _non_negative_int(body.get('max_acceptances', 1), 'max_acceptances', minimum=1),
        'escrowBalance': _non_negative_int(body.get('escrow_balance', 0), 'escrow_balance'),
        'status': TaskStatus.OPEN,
        'createdAt': created_at
    }

    # Only add optional attributes when present
    if choices is not None:
        item['choices'] = choices
    if starts_at:
        item['startsAt'] = starts_at
    if ends_at:
        item['endsAt'] = ends_at

    return item


def handler(event, context):
    log_event(event)

    method = get_http_method(event)
    if method and method != 'POST':
        return error_response(405, 'Method not allowed')

    if not config.ADMIN_SECRET:
        return error_response(500, 'Server not configured')

    if not has_admin_secret(event, config.ADMIN_SECRET):
        return error_response(403, 'Forbidden: invalid admin secret')

    body = parse_body(event)
    task_id = str(uuid.uuid4())
    timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat()

    try:
        item = build_task_item(body, task_id, timestamp)
    except ValueError as e:
        return error_response(400, str(e))

    success = put_item(config.TASKS_TABLE, item, condition='attribute_not_exists(taskId)')
    if not success:
        return error_response(500, 'DB error')

    logger.info(f"Created official task {task_id} reward={item['rewardPerCompletion']} "
                f"escrow={item['escrowBalance']} max={item['maxAcceptances']}")
    return format_response(201, {'success': True, 'taskId': task_id})
