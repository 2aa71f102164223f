"""
Submit Answer Handler - settles a task submission.
POST /tasks/submit
Body: { "task_id": "...", "answer": "..." }

The caller is identified by the Cognito authorizer. Correct answers are paid
from the task escrow into the caller's points in one transaction.
"""
from shared.auth import get_user_sub
from shared.dynamo import DynamoTaskStore
from shared.errors import SettlementError
from shared.logging import logger, log_event
from shared.settlement import SettlementEngine
from shared.utils import error_response, format_response, get_http_method, get_path_param, parse_body

_engine = None


def get_engine() -> SettlementEngine:
    """Engine bound to the configured tables, created once per container."""
    global _engine
    if _engine is None:
        _engine = SettlementEngine(DynamoTaskStore())
    return _engine


def handler(event, context):
    log_event(event)

    method = get_http_method(event)
    if method and method != 'POST':
        return error_response(405, 'Method not allowed')

    user_id = get_user_sub(event)
    if not user_id:
        return error_response(401, 'Unauthorized')

    body = parse_body(event)
    task_id = body.get('task_id') or get_path_param(event, 'taskId')
    if not task_id or 'answer' not in body or body.get('answer') is None:
        return error_response(400, 'task_id and answer are required')

    try:
        result = get_engine().submit(str(task_id), user_id, body['answer'])
    except SettlementError as e:
        return error_response(e.status_code, e.message, errorKind=e.error_kind)
    except Exception:
        logger.exception('submit handler error')
        return error_response(500, 'internal error', errorKind='InternalError')

    return format_response(200, result.to_body())
