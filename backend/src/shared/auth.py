"""
Authentication utilities for extracting caller identity from API Gateway events.
"""
import hmac
from typing import Optional


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.
    
    Args:
        event: API Gateway Lambda proxy event
        
    Returns:
        User sub string or None if not authenticated
    """
    try:
        sub = event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None
    return str(sub) if sub else None


def get_header(event: dict, name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    headers = event.get('headers') or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def has_admin_secret(event: dict, secret: str) -> bool:
    """Check the X-Admin-Secret header against the configured secret."""
    provided = get_header(event, 'x-admin-secret')
    if not secret or provided is None:
        return False
    return hmac.compare_digest(str(provided).encode('utf-8'), secret.encode('utf-8'))
