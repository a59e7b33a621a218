"""The fixed-length journaling conversation.

A conversation opens with a greeting, runs ``max_turns`` student messages,
each answered by the coach, and ends with a closing remark from the coach
and a mood summary. Only finished conversations are saved; one abandoned
halfway is gone when the session ends.

States::

    GREETING -> EXCHANGING -> SUMMARIZING -> COMPLETE

The closing remark is produced on the last turn, after which the session
moves straight to SUMMARIZING.
"""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from heartcoach.coach import CoachGateway
from heartcoach.config import DEFAULT_MAX_TURNS
from heartcoach.database.models import Account, Conversation, FinalSummary, Message
from heartcoach.database.store import JournalStore
from heartcoach.errors import ConversationClosedError, EmptyMessageError, HeartCoachError
from heartcoach.logutils import get_logger, with_context

logger = get_logger(__name__)

GREETING_TEMPLATE = (
    "Hi {name}! I'm your Warm Heart Coach.\n"
    "What happened today? Tell me about it, whatever is on your mind."
)


class ConversationState(str, Enum):
    GREETING = "greeting"
    EXCHANGING = "exchanging"
    SUMMARIZING = "summarizing"
    COMPLETE = "complete"


def new_conversation_id(now: datetime) -> str:
    return f"conv_{int(now.timestamp() * 1000)}_{secrets.token_hex(3)}"


class ConversationSession:
    """One student's in-progress conversation with the coach.

    Gateway failures leave ``messages`` and ``turn`` exactly as they were, so
    the student can send the same message again.
    """

    def __init__(
        self,
        account: Account,
        coach: CoachGateway,
        store: JournalStore,
        max_turns: int = DEFAULT_MAX_TURNS,
    ):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.account = account
        self.coach = coach
        self.store = store
        self.max_turns = max_turns
        self.turn = 0
        self.state = ConversationState.GREETING
        self.messages: List[Message] = [
            Message(sender="ai", text=GREETING_TEMPLATE.format(name=account.name))
        ]
        self.summary: Optional[FinalSummary] = None
        self.conversation: Optional[Conversation] = None

    @property
    def is_complete(self) -> bool:
        return self.state == ConversationState.COMPLETE

    @property
    def turns_left(self) -> int:
        return self.max_turns - self.turn

    def send(self, text: str) -> Message:
        """Send the student's message and return the coach's reply.

        On the last turn the reply is the closing remark and the conversation
        is summarized and saved before returning. If summarizing fails the
        error propagates and the session stays in SUMMARIZING; calling
        ``send`` again (any text, which is not recorded) or ``finish`` retries
        the summary.

        Raises:
            EmptyMessageError: ``text`` is blank
            ConversationClosedError: The conversation is already complete
            HeartCoachError: The coach could not be reached or its answer was unusable
        """
        if self.state == ConversationState.COMPLETE:
            raise ConversationClosedError()

        if self.state == ConversationState.SUMMARIZING:
            self.finish()
            return self.messages[-1]

        if not text or not text.strip():
            raise EmptyMessageError()

        next_turn = self.turn + 1
        history = [*self.messages, Message(sender="user", text=text)]

        with with_context(
            operation="chat_turn", student_name=self.account.name, role="student", turn=next_turn
        ):
            if next_turn >= self.max_turns:
                reply_text = self.coach.close_conversation(history)
            else:
                reply_text = self.coach.continue_conversation(history)

            reply = Message(sender="ai", text=reply_text)
            self.messages = [*history, reply]
            self.turn = next_turn
            logger.debug("Turn completed", extra={"extra_data": {"turns_left": self.turns_left}})

            if self.turn >= self.max_turns:
                self.state = ConversationState.SUMMARIZING
                self.finish()
            else:
                self.state = ConversationState.EXCHANGING

        return reply

    def finish(self) -> FinalSummary:
        """Summarize and save the conversation. Explicit retry after a failed summary.

        Raises:
            ConversationClosedError: Already complete
            HeartCoachError: Not all turns have been taken yet, or summarizing failed
        """
        if self.state == ConversationState.COMPLETE:
            raise ConversationClosedError()
        if self.state != ConversationState.SUMMARIZING:
            raise HeartCoachError(
                f"Conversation has {self.turns_left} turn(s) left",
                "Keep chatting a little longer before we wrap up.",
            )

        with with_context(operation="summarize", student_name=self.account.name, role="student"):
            summary = self.coach.summarize(self.messages)

            now = datetime.now(timezone.utc)
            conversation = Conversation(
                id=new_conversation_id(now),
                timestamp=now,
                messages=tuple(self.messages),
                summary=summary,
            )
            self.store.add_conversation(self.account.name, conversation)

            self.summary = summary
            self.conversation = conversation
            self.state = ConversationState.COMPLETE
            logger.info(
                "Conversation saved",
                extra={"extra_data": {"conversation_id": conversation.id, "turns": self.turn}},
            )
            return summary


def get_history(store: JournalStore, name: str) -> List[Conversation]:
    """A student's saved conversations, newest first."""
    return sorted(store.get_conversations(name), key=lambda c: c.timestamp, reverse=True)
