class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class UserNotFoundError(DomainError):
    """Exception raised when a user is not found in the user directory."""

    pass


class ConversationMappingNotFoundError(DomainError):
    """Raised when no conversation -> message correlation has been registered.

    This is a legitimate state (the turn has not registered yet), distinct
    from a request that is missing required fields.
    """

    def __init__(self, conversation_id: str):
        super().__init__(f"No message registered for conversation {conversation_id}")
        self.conversation_id = conversation_id


class UpstreamServiceError(DomainError):
    """Exception raised when the GPTBots service fails or is unreachable."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
