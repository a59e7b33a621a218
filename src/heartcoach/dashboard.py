"""Teacher mood dashboard.

Each student's most recent mood summary is classified into a Mood Meter
quadrant. Classifications are independent, so they run on a thread pool;
the result is returned once every student has a quadrant.
"""

import contextvars
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple

from heartcoach.coach import CoachGateway
from heartcoach.database.models import Conversation, Defaulted, MoodQuadrant, StudentMood
from heartcoach.database.store import JournalStore
from heartcoach.logutils import get_logger, with_context

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8


def latest_conversation(conversations: List[Conversation]) -> Optional[Conversation]:
    """The conversation with the greatest timestamp; on a tie the later-stored one."""
    latest: Optional[Conversation] = None
    for conversation in conversations:
        if latest is None or conversation.timestamp >= latest.timestamp:
            latest = conversation
    return latest


class MoodDashboard:
    """Groups students by the quadrant of their latest mood."""

    def __init__(
        self, store: JournalStore, coach: CoachGateway, max_workers: int = DEFAULT_MAX_WORKERS
    ):
        self.store = store
        self.coach = coach
        self.max_workers = max_workers

    def latest_moods(self) -> List[Tuple[str, Conversation]]:
        """(student name, latest conversation) for every student who has one."""
        result = []
        for name, conversations in self.store.get_all_conversations().items():
            latest = latest_conversation(conversations)
            if latest is not None:
                result.append((name, latest))
        return result

    def _classify(self, name: str, conversation: Conversation) -> StudentMood:
        mood = conversation.summary.mood
        classification = self.coach.classify_mood(mood)
        defaulted = isinstance(classification, Defaulted)
        if defaulted:
            logger.warning(
                "Mood classification defaulted",
                extra={"extra_data": {"student_name": name, "reason": classification.reason}},
            )
        return StudentMood(
            name=name,
            mood=mood,
            quadrant=classification.quadrant,
            timestamp=conversation.timestamp,
            defaulted=defaulted,
        )

    def compute(self) -> Dict[MoodQuadrant, List[StudentMood]]:
        """Classify every student's latest mood and bucket by quadrant.

        All four quadrants are present in the result, possibly empty.
        Students without any conversation do not appear. Within a bucket,
        students are sorted by name.
        """
        buckets: Dict[MoodQuadrant, List[StudentMood]] = {quadrant: [] for quadrant in MoodQuadrant}

        with with_context(operation="mood_dashboard", role="teacher"):
            latest = self.latest_moods()
            if not latest:
                return buckets

            # Worker log lines carry this load's correlation id
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(latest))) as pool:
                futures = [
                    pool.submit(contextvars.copy_context().run, self._classify, name, conversation)
                    for name, conversation in latest
                ]
                rows = [future.result() for future in futures]

            for row in rows:
                buckets[row.quadrant].append(row)
            for bucket in buckets.values():
                bucket.sort(key=lambda row: row.name.lower())

            logger.info(
                "Mood dashboard computed",
                extra={
                    "extra_data": {
                        "students": len(rows),
                        "defaulted": sum(1 for row in rows if row.defaulted),
                    }
                },
            )
        return buckets
