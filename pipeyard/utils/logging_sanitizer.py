"""
Logging Sanitizer Utility

Provides utilities to sanitize API payloads before logging.
Keeps credentials and customer contact data out of the log files.
"""

from typing import Any, Dict


# Fields that should never be logged (compared case-insensitively)
SENSITIVE_FIELDS = {
    'password',
    'secret',
    'secret_key',
    'token',
    'api_key',
    'apikey',
    'auth_token',
    'access_token',
    'refresh_token',
    'authorization',
    'session_id',
    'contact_email',
    'contactemail',
    'email',
    'phone',
    'contact_phone',
}


def sanitize_dict(data: Dict[str, Any], redact_text: str = '[REDACTED]') -> Dict[str, Any]:
    """
    Sanitize a dictionary by replacing sensitive field values with redaction text.

    Nested dicts and dicts inside lists (e.g. manifest lines) are sanitized too.

    Example:
        >>> sanitize_dict({'owner': 'Acme', 'contact_email': 'ops@acme.test'})
        {'owner': 'Acme', 'contact_email': '[REDACTED]'}
    """
    if not data:
        return data

    sanitized = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            sanitized[key] = redact_text
        else:
            sanitized[key] = _sanitize_value(value, redact_text)

    return sanitized


def _sanitize_value(value: Any, redact_text: str) -> Any:
    if isinstance(value, dict):
        return sanitize_dict(value, redact_text)
    if isinstance(value, list):
        return [_sanitize_value(entry, redact_text) for entry in value]
    return value


def sanitize_exception_message(exception: Exception) -> str:
    """
    Sanitize exception messages to ensure they don't contain sensitive data.

    A message mentioning any sensitive field name is replaced entirely.
    """
    message = str(exception)

    if any(field in message.lower() for field in SENSITIVE_FIELDS):
        return f"{type(exception).__name__}: [Message contains sensitive data]"

    return message
