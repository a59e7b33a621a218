"""Claude integration for the HeartCoach journaling coach.

All network traffic to the AI provider goes through ``CoachGateway``. The
API key is read from the store before every call, so a teacher can replace
it without restarting the app.
"""

import json
from typing import Any, Iterable, List, Optional

from anthropic import (
    Anthropic,
    APIConnectionError,
    APIError,
    APIStatusError,
    InternalServerError,
    RateLimitError,
)
from pydantic import ValidationError

from heartcoach.auth import get_api_key
from heartcoach.config import Settings
from heartcoach.database.models import (
    Classified,
    Defaulted,
    FinalSummary,
    Message,
    MoodClassification,
    MoodQuadrant,
)
from heartcoach.database.store import JournalStore
from heartcoach.errors import (
    CredentialMissingError,
    ProviderError,
    ProviderRequestError,
    ProviderUnavailableError,
    SummaryParseError,
)
from heartcoach.logutils import get_logger

logger = get_logger(__name__)

CHAT_SYSTEM_PROMPT = """You are the Warm Heart Coach, a gentle companion for a school student who is journaling about their day.
Based on the conversation so far, show that you truly understand how the student feels, then softly ask ONE open-ended question that helps them explore where that feeling comes from.
Answer in one or two short sentences. Never give advice and never judge."""

CLOSING_SYSTEM_PROMPT = """You are the Warm Heart Coach, a gentle companion for a school student who is journaling about their day.
Based on the conversation so far, close the conversation with one or two soft, warm sentences.
Do not ask any question and do not give advice."""

SUMMARY_PROMPT = """You are an expert in understanding emotions. Read the whole conversation below and summarize the student's mood today and a warm closing message for them by calling the record_summary tool.

[Conversation]
---
{transcript}
---"""

CLASSIFY_PROMPT = """Classify the feeling described below into one of the four Mood Meter quadrants. The Mood Meter sorts feelings by energy (high/low) and pleasantness (pleasant/unpleasant).
- YELLOW: high energy, pleasant (e.g. happy, excited, proud)
- RED: high energy, unpleasant (e.g. angry, anxious, scared)
- BLUE: low energy, unpleasant (e.g. sad, lonely, tired)
- GREEN: low energy, pleasant (e.g. calm, secure, content)

Answer with exactly one word: YELLOW, RED, BLUE or GREEN.

Feeling: "{mood}\""""

SUMMARY_TOOL = {
    "name": "record_summary",
    "description": "Record the summary of today's conversation.",
    "input_schema": {
        "type": "object",
        "properties": {
            "mood": {
                "type": "string",
                "description": "The student's mood across the whole conversation in one or two words, e.g. \"proud and happy\".",
            },
            "message": {
                "type": "string",
                "description": "A warm, encouraging final message for the student based on the conversation.",
            },
        },
        "required": ["mood", "message"],
    },
}

CHAT_MAX_TOKENS = 300
SUMMARY_MAX_TOKENS = 500
CLASSIFY_MAX_TOKENS = 10


def _get_status_code(error: Exception) -> Optional[int]:
    """Extract HTTP status code from an API error."""
    status_code = getattr(error, "status_code", None)
    if status_code is None and hasattr(error, "response"):
        status_code = getattr(error.response, "status_code", None)
    return status_code


def categorize_error(error: Exception) -> ProviderError:
    """Map an Anthropic SDK error onto the HeartCoach taxonomy.

    Connection failures, timeouts, rate limits and 5xx responses mean the
    provider is unavailable; any other status means the request was rejected.
    """
    if isinstance(error, (APIConnectionError, RateLimitError, InternalServerError)):
        return ProviderUnavailableError(original_error=error)

    if isinstance(error, APIStatusError):
        status_code = _get_status_code(error)
        if status_code and (status_code == 429 or status_code >= 500):
            return ProviderUnavailableError(original_error=error)
        return ProviderRequestError(message=str(error), original_error=error)

    return ProviderUnavailableError(original_error=error)


def to_api_messages(history: Iterable[Message]) -> List[dict]:
    """Convert chat history to Messages API format.

    The Messages API expects the first turn from the user, so the coach's
    opening greeting is left out.
    """
    messages: List[dict] = []
    for message in history:
        role = "user" if message.sender == "user" else "assistant"
        if not messages and role == "assistant":
            continue
        messages.append({"role": role, "content": message.text})
    return messages


def format_transcript(history: Iterable[Message]) -> str:
    return "\n".join(
        f"{'Me' if message.sender == 'user' else 'Coach'}: {message.text}" for message in history
    )


def _response_text(response: Any) -> str:
    texts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
    return "\n".join(texts).strip()


class CoachGateway:
    """Sends transcripts to Claude and decodes typed results."""

    def __init__(self, store: JournalStore, settings: Optional[Settings] = None):
        settings = settings or Settings.from_env()
        self.store = store
        self.chat_model = settings.chat_model
        self.summary_model = settings.summary_model
        self.timeout = settings.ai_timeout

    def _client(self, api_key: Optional[str] = None) -> Anthropic:
        api_key = api_key or get_api_key(self.store)
        if not api_key:
            raise CredentialMissingError()
        # Retries are the student's call, not the SDK's
        return Anthropic(api_key=api_key, timeout=self.timeout, max_retries=0)

    def _create(self, **kwargs: Any) -> Any:
        client = self._client()
        try:
            return client.messages.create(**kwargs)
        except APIError as e:
            categorized = categorize_error(e)
            logger.error(
                f"Coach request failed: {categorized}",
                extra={"extra_data": {"model": kwargs.get("model"), "error_type": type(e).__name__}},
            )
            raise categorized from e

    def _reply(self, system: str, history: List[Message]) -> str:
        response = self._create(
            model=self.chat_model,
            max_tokens=CHAT_MAX_TOKENS,
            system=system,
            messages=to_api_messages(history),
        )
        text = _response_text(response)
        if not text:
            raise ProviderUnavailableError(original_error=ValueError("empty reply from provider"))
        return text

    def continue_conversation(self, history: List[Message]) -> str:
        """One short empathetic open question about the student's feelings."""
        return self._reply(CHAT_SYSTEM_PROMPT, history)

    def close_conversation(self, history: List[Message]) -> str:
        """A short warm closing remark, with no question."""
        return self._reply(CLOSING_SYSTEM_PROMPT, history)

    def summarize(self, history: List[Message]) -> FinalSummary:
        """Summarize the conversation as ``{mood, message}``.

        Raises:
            SummaryParseError: The provider did not return exactly those two strings
        """
        response = self._create(
            model=self.summary_model,
            max_tokens=SUMMARY_MAX_TOKENS,
            tools=[SUMMARY_TOOL],
            tool_choice={"type": "tool", "name": SUMMARY_TOOL["name"]},
            messages=[
                {"role": "user", "content": SUMMARY_PROMPT.format(transcript=format_transcript(history))}
            ],
        )

        payload: Any = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == SUMMARY_TOOL["name"]:
                payload = block.input
                break

        if payload is None:
            text = _response_text(response)
            try:
                payload = json.loads(text)
            except json.JSONDecodeError as e:
                raise SummaryParseError(f"no tool call and no JSON in reply: {e}") from e

        try:
            summary = FinalSummary.model_validate(payload)
        except ValidationError as e:
            raise SummaryParseError(str(e)) from e

        logger.info("Conversation summarized", extra={"extra_data": {"mood": summary.mood}})
        return summary

    def classify_mood(self, mood_text: str) -> MoodClassification:
        """Place a mood phrase in a Mood Meter quadrant.

        Never raises: any failure or unrecognized answer yields ``Defaulted``.
        """
        try:
            response = self._create(
                model=self.summary_model,
                max_tokens=CLASSIFY_MAX_TOKENS,
                messages=[{"role": "user", "content": CLASSIFY_PROMPT.format(mood=mood_text)}],
            )
            answer = _response_text(response).upper()
        except Exception as e:
            logger.warning(f"Mood classification failed, using default: {type(e).__name__}")
            return Defaulted(reason=f"{type(e).__name__}: {e}")

        try:
            return Classified(quadrant=MoodQuadrant(answer))
        except ValueError:
            logger.warning(
                "Unrecognized mood quadrant, using default",
                extra={"extra_data": {"answer": answer[:20]}},
            )
            return Defaulted(reason=f"unrecognized answer: {answer[:20]!r}")

    def validate_credential(self, candidate_key: str) -> bool:
        """Check an API key with the cheapest possible request."""
        if not candidate_key:
            return False
        try:
            client = self._client(candidate_key)
            client.messages.create(
                model=self.summary_model,
                max_tokens=1,
                messages=[{"role": "user", "content": "test"}],
            )
            return True
        except Exception as e:
            logger.info(f"API key check failed: {type(e).__name__}")
            return False
