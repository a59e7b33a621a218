"""HeartCoach: mood journaling with an AI coach and a teacher mood dashboard."""

__version__ = "0.1.0"
