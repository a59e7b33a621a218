"""Error taxonomy for HeartCoach.

Every error carries a ``user_message`` that the Streamlit app and the CLI
show as-is. None of them is fatal; each is recovered by the user acting
again (resubmitting a form, resending a message).
"""


class HeartCoachError(Exception):
    """Base class for errors with user-friendly messages."""

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class DuplicateNameError(HeartCoachError):
    """An account with this name already exists (case-insensitive)."""

    def __init__(self, name: str):
        super().__init__(
            message=f"Account name already taken: {name}",
            user_message="That name is already in use. Please choose another.",
        )
        self.name = name


class InvalidCredentialsError(HeartCoachError):
    """Name/password or teacher password did not match."""

    def __init__(self, user_message: str = "Incorrect name or password."):
        super().__init__(message="Invalid credentials", user_message=user_message)


class InvalidNameError(HeartCoachError):
    """The account name is blank."""

    def __init__(self):
        super().__init__(message="Blank account name", user_message="Please enter your name.")


class InvalidPasswordError(HeartCoachError):
    """Password does not meet the format rules."""


class TeacherAccessRequiredError(HeartCoachError):
    """A teacher-only operation was attempted without unlocking teacher access."""

    def __init__(self):
        super().__init__(
            message="Teacher access is not unlocked",
            user_message="Please enter the teacher password first.",
        )


class CredentialMissingError(HeartCoachError):
    """No API key is configured for the AI coach."""

    def __init__(self):
        super().__init__(
            message="Anthropic API key not configured",
            user_message="The AI coach is not set up yet. Please save an API key first.",
        )


class ProviderError(HeartCoachError):
    """Base class for failures talking to the AI provider."""

    def __init__(self, message: str, user_message: str, original_error: Exception | None = None):
        super().__init__(message, user_message)
        self.original_error = original_error


class ProviderUnavailableError(ProviderError):
    """Transport failure, timeout, rate limit or 5xx from the provider."""

    def __init__(self, original_error: Exception | None = None):
        super().__init__(
            message=f"AI provider unavailable: {original_error}",
            user_message="The coach could not answer right now. Please try sending again.",
            original_error=original_error,
        )


class ProviderRequestError(ProviderError):
    """The provider rejected the request (4xx other than 429)."""

    def __init__(self, message: str, original_error: Exception | None = None):
        super().__init__(
            message=message,
            user_message=f"The coach request was rejected: {message}",
            original_error=original_error,
        )


class SummaryParseError(HeartCoachError):
    """The provider's summary was not a {mood, message} object."""

    def __init__(self, detail: str):
        super().__init__(
            message=f"Could not parse conversation summary: {detail}",
            user_message="Something went wrong while summarizing today's chat. Please try again.",
        )


class EmptyMessageError(HeartCoachError):
    """The student tried to send a blank message."""

    def __init__(self):
        super().__init__(message="Empty message", user_message="Please type a message first.")


class ConversationClosedError(HeartCoachError):
    """Input arrived after the conversation was complete."""

    def __init__(self):
        super().__init__(
            message="Conversation already complete",
            user_message="Today's conversation is finished. Start a new one from the dashboard.",
        )
