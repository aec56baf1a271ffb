"""Exception types shared across services and translated by the API layer."""


class NudgeError(Exception):
    """Base class for domain errors."""


class ValidationError(NudgeError):
    """Caller supplied missing or invalid input (HTTP 400)."""


class NotFoundError(NudgeError):
    """Referenced template, batch, log or group does not exist (HTTP 404)."""


class AINotConfiguredError(NudgeError):
    """An AI-backed feature was requested without an AI provider."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "AI is not configured. Set ANTHROPIC_API_KEY to use this feature."
        )
