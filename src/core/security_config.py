"""Security configuration constants for the housing-fund assistant API.

This module centralizes security-related configuration including:
- Sensitive keys that should be sanitized from logs
- Error handling security settings
"""

# Keys redacted from structured logs. Citizens' identity data flows through
# the workflow payloads, so the PII list is broader than credentials alone.
SENSITIVE_KEYS: set[str] = {
    # Authentication & upstream credentials
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "agent_key",
    "workflow_key",
    "bearer",
    "cookie",
    "set-cookie",
    "session_id",
    "otp",
    "sms_code",
    "verification_code",
    # Personal Identifiable Information
    "phone",
    "mobile",
    "sjhm",
    "id_card",
    "id_number",
    "zjhm",
    "pozjhm",
    "bank_account",
    "bank_card",
    "account_number",
    "address",
}

# Production-only error response fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development error response fields (additional fields allowed in development)
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error response fields based on environment.

    Args:
        environment: The application environment (production, development, etc.)

    Returns:
        Set of allowed field names for error responses
    """
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)
