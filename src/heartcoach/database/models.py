"""Pydantic models for HeartCoach data."""

from datetime import datetime
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    """Registered student."""

    name: str
    password_hash: str


class Message(BaseModel):
    """One chat bubble."""

    model_config = ConfigDict(frozen=True)

    sender: Literal["user", "ai"]
    text: str


class FinalSummary(BaseModel):
    """Mood and closing note produced once per finished conversation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mood: str = Field(description="The student's mood today in one or two words")
    message: str = Field(description="A warm, encouraging closing message for the student")


class Conversation(BaseModel):
    """A completed conversation."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    messages: tuple[Message, ...]
    summary: FinalSummary


class MoodQuadrant(str, Enum):
    """Mood Meter quadrants (energy x pleasantness)."""

    YELLOW = "YELLOW"  # high energy, pleasant
    RED = "RED"  # high energy, unpleasant
    BLUE = "BLUE"  # low energy, unpleasant
    GREEN = "GREEN"  # low energy, pleasant

    @property
    def label(self) -> str:
        return QUADRANT_LABELS[self]


QUADRANT_LABELS = {
    MoodQuadrant.YELLOW: "High energy, pleasant",
    MoodQuadrant.RED: "High energy, unpleasant",
    MoodQuadrant.BLUE: "Low energy, unpleasant",
    MoodQuadrant.GREEN: "Low energy, pleasant",
}

DEFAULT_QUADRANT = MoodQuadrant.BLUE


class Classified(BaseModel):
    """The provider returned a recognized quadrant."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["classified"] = "classified"
    quadrant: MoodQuadrant


class Defaulted(BaseModel):
    """The provider failed or answered outside the four labels."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["defaulted"] = "defaulted"
    quadrant: MoodQuadrant = DEFAULT_QUADRANT
    reason: str = ""


MoodClassification = Union[Classified, Defaulted]


class StudentMood(BaseModel):
    """One row on the teacher's mood dashboard."""

    name: str
    mood: str
    quadrant: MoodQuadrant
    timestamp: datetime
    defaulted: bool = False
