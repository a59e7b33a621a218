"""Tests for the coach gateway: prompts, decoding and error mapping."""

from unittest.mock import MagicMock, patch

import pytest
from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    RateLimitError,
)
from httpx import Request, Response

from heartcoach.auth import save_api_key
from heartcoach.coach import (
    SUMMARY_TOOL,
    categorize_error,
    format_transcript,
    to_api_messages,
)
from heartcoach.database.models import Classified, Defaulted, FinalSummary, Message, MoodQuadrant
from heartcoach.errors import (
    CredentialMissingError,
    ProviderRequestError,
    ProviderUnavailableError,
    SummaryParseError,
)

pytestmark = pytest.mark.unit

REQUEST = Request(method="POST", url="https://api.anthropic.com/v1/messages")

HISTORY = [
    Message(sender="ai", text="Hi Mina! What happened today?"),
    Message(sender="user", text="I won the relay race."),
    Message(sender="ai", text="That sounds exciting! How did it feel to cross the line?"),
    Message(sender="user", text="Really proud."),
]


def _status_error(cls, status_code, message="error"):
    return cls(
        message=message,
        response=Response(status_code=status_code, request=REQUEST),
        body={"error": {"message": message}},
    )


@pytest.fixture
def client(store):
    """Patched Anthropic client with a stored API key."""
    save_api_key(store, "sk-ant-test")
    with patch("heartcoach.coach.Anthropic") as mock_anthropic_class:
        mock_client = MagicMock()
        mock_anthropic_class.return_value = mock_client
        mock_client.anthropic_class = mock_anthropic_class
        yield mock_client


class TestCategorizeError:
    """Test mapping of SDK errors onto the HeartCoach taxonomy."""

    def test_rate_limit_is_unavailable(self):
        assert isinstance(categorize_error(_status_error(RateLimitError, 429)), ProviderUnavailableError)

    def test_server_error_is_unavailable(self):
        error = _status_error(InternalServerError, 500)
        assert isinstance(categorize_error(error), ProviderUnavailableError)

    def test_connection_error_is_unavailable(self):
        assert isinstance(
            categorize_error(APIConnectionError(request=REQUEST)), ProviderUnavailableError
        )

    def test_timeout_is_unavailable(self):
        assert isinstance(categorize_error(APITimeoutError(request=REQUEST)), ProviderUnavailableError)

    def test_bad_request_is_request_error(self):
        result = categorize_error(_status_error(BadRequestError, 400, "prompt too long"))
        assert isinstance(result, ProviderRequestError)
        assert "prompt too long" in result.user_message

    def test_authentication_is_request_error(self):
        assert isinstance(
            categorize_error(_status_error(AuthenticationError, 401)), ProviderRequestError
        )

    def test_original_error_is_kept(self):
        error = _status_error(RateLimitError, 429)
        assert categorize_error(error).original_error is error


class TestMessageFormatting:
    """Test conversion of chat history for the Messages API."""

    def test_leading_greeting_is_skipped(self):
        messages = to_api_messages(HISTORY)

        assert messages[0] == {"role": "user", "content": "I won the relay race."}
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]

    def test_transcript_labels_speakers(self):
        transcript = format_transcript(HISTORY[:2])
        assert transcript == "Coach: Hi Mina! What happened today?\nMe: I won the relay race."


class TestChat:
    """Test continue_conversation and close_conversation."""

    def test_continue_returns_reply_text(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("What made you proudest?")

        assert coach.continue_conversation(HISTORY) == "What made you proudest?"

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == coach.chat_model
        assert kwargs["messages"][-1] == {"role": "user", "content": "Really proud."}
        assert "ONE open-ended question" in kwargs["system"]

    def test_close_uses_closing_prompt(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("Thank you for sharing today.")

        assert coach.close_conversation(HISTORY) == "Thank you for sharing today."
        assert "Do not ask any question" in client.messages.create.call_args.kwargs["system"]

    def test_client_has_no_sdk_retries(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("ok")

        coach.continue_conversation(HISTORY)

        kwargs = client.anthropic_class.call_args.kwargs
        assert kwargs["api_key"] == "sk-ant-test"
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == coach.timeout

    def test_missing_key_raises_before_any_request(self, coach):
        with patch("heartcoach.coach.Anthropic") as mock_anthropic_class:
            with pytest.raises(CredentialMissingError):
                coach.continue_conversation(HISTORY)
            mock_anthropic_class.assert_not_called()

    def test_rate_limit_raises_unavailable_once(self, coach, client):
        client.messages.create.side_effect = _status_error(RateLimitError, 429)

        with pytest.raises(ProviderUnavailableError):
            coach.continue_conversation(HISTORY)
        assert client.messages.create.call_count == 1

    def test_bad_request_raises_request_error(self, coach, client):
        client.messages.create.side_effect = _status_error(BadRequestError, 400)

        with pytest.raises(ProviderRequestError):
            coach.close_conversation(HISTORY)

    def test_empty_reply_is_unavailable(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("   ")

        with pytest.raises(ProviderUnavailableError):
            coach.continue_conversation(HISTORY)


class TestSummarize:
    """Test structured summary decoding."""

    def test_tool_call_is_decoded(self, coach, client, make_tool_response):
        client.messages.create.return_value = make_tool_response(
            {"mood": "proud and happy", "message": "You ran your heart out today!"}
        )

        summary = coach.summarize(HISTORY)

        assert summary == FinalSummary(mood="proud and happy", message="You ran your heart out today!")
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": SUMMARY_TOOL["name"]}
        assert "Me: Really proud." in kwargs["messages"][0]["content"]

    def test_json_text_fallback(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response(
            '{"mood": "calm", "message": "Rest well tonight."}'
        )

        assert coach.summarize(HISTORY) == FinalSummary(mood="calm", message="Rest well tonight.")

    def test_plain_text_is_parse_error(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("She seemed happy.")

        with pytest.raises(SummaryParseError):
            coach.summarize(HISTORY)

    @pytest.mark.parametrize(
        "payload",
        [
            {"mood": "calm"},
            {"message": "Rest well."},
            {"mood": "calm", "message": "Rest well.", "score": 3},
            {"mood": 3, "message": "Rest well."},
            ["calm", "Rest well."],
        ],
    )
    def test_wrong_shape_is_parse_error(self, coach, client, make_tool_response, payload):
        client.messages.create.return_value = make_tool_response(payload)

        with pytest.raises(SummaryParseError):
            coach.summarize(HISTORY)


class TestClassifyMood:
    """Test Mood Meter classification."""

    @pytest.mark.parametrize(
        "answer,quadrant",
        [
            ("YELLOW", MoodQuadrant.YELLOW),
            ("red", MoodQuadrant.RED),
            (" Blue ", MoodQuadrant.BLUE),
            ("GREEN", MoodQuadrant.GREEN),
        ],
    )
    def test_recognized_answer(self, coach, client, make_text_response, answer, quadrant):
        client.messages.create.return_value = make_text_response(answer)

        assert coach.classify_mood("excited") == Classified(quadrant=quadrant)

    def test_unrecognized_answer_defaults_to_blue(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("PURPLE")

        result = coach.classify_mood("confused")

        assert isinstance(result, Defaulted)
        assert result.quadrant == MoodQuadrant.BLUE

    def test_provider_failure_defaults_to_blue(self, coach, client):
        client.messages.create.side_effect = _status_error(InternalServerError, 500)

        result = coach.classify_mood("tired")

        assert isinstance(result, Defaulted)
        assert result.quadrant == MoodQuadrant.BLUE

    def test_missing_key_defaults_to_blue(self, coach):
        result = coach.classify_mood("tired")
        assert isinstance(result, Defaulted)
        assert result.quadrant == MoodQuadrant.BLUE

    def test_mood_text_is_in_prompt(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("GREEN")

        coach.classify_mood("calm and safe")

        assert "calm and safe" in client.messages.create.call_args.kwargs["messages"][0]["content"]


class TestValidateCredential:
    """Test API key checks."""

    def test_valid_key(self, coach, client, make_text_response):
        client.messages.create.return_value = make_text_response("ok")

        assert coach.validate_credential("sk-ant-candidate") is True
        assert client.anthropic_class.call_args.kwargs["api_key"] == "sk-ant-candidate"

    def test_rejected_key(self, coach, client):
        client.messages.create.side_effect = _status_error(AuthenticationError, 401)
        assert coach.validate_credential("sk-ant-bad") is False

    def test_empty_key(self, coach, client):
        assert coach.validate_credential("") is False
        client.messages.create.assert_not_called()
