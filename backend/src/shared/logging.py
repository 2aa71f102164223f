"""
Logging utilities for Lambda handlers.
"""
import logging
import json

# Configure logger
logger = logging.getLogger('microrewards')
logger.setLevel(logging.INFO)

# Add handler if not already configured
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def log_event(event: dict) -> None:
    """Log incoming Lambda event for debugging."""
    try:
        # Avoid logging answers and auth headers
        safe_event = {k: v for k, v in event.items() if k not in ['body', 'headers', 'multiValueHeaders']}
        logger.info(f"Lambda event: {json.dumps(safe_event, default=str)}")
    except (TypeError, ValueError) as e:
        logger.warning(f"Could not log event: {e}")


def log_settlement(outcome: str, task_id: str, user_id: str, **fields) -> None:
    """Log one settlement decision as a single key=value line."""
    context = ' '.join(f"{k}={v}" for k, v in fields.items())
    logger.info(f"Settlement {outcome} task={task_id} user={user_id} {context}".rstrip())
