"""
Notification hooks fired after quiz events

Notifications are fire-and-forget: a failing notifier is logged and never
fails the operation that triggered it.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

import sentry_sdk

from assessment.core.config import settings
from assessment.db.redis import RedisPublisher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptSubmittedEvent:
    quiz_id: int
    quiz_name: str
    author_id: int
    learner_id: int
    attempt_id: int
    status: str
    total_marks_obtained: float
    percentage: float
    passed: bool
    submitted_at: datetime
    type: str = field(default="attempt_submitted")


@dataclass(frozen=True)
class QuizPublishedEvent:
    quiz_id: int
    quiz_name: str
    author_id: int
    cohort_id: Optional[int]
    start_time: datetime
    end_time: datetime
    type: str = field(default="quiz_published")


class Notifier(Protocol):
    def attempt_submitted(self, event: AttemptSubmittedEvent) -> None: ...

    def quiz_published(self, event: QuizPublishedEvent) -> None: ...


class LoggingNotifier:
    """Writes events to the application log"""

    def attempt_submitted(self, event: AttemptSubmittedEvent) -> None:
        logger.info("Quiz submitted", extra=_payload(event))

    def quiz_published(self, event: QuizPublishedEvent) -> None:
        logger.info("Quiz published", extra=_payload(event))


class RedisNotifier:
    """Publishes events as JSON on a redis pub/sub channel"""

    def __init__(self, publisher: Optional[RedisPublisher] = None, channel: Optional[str] = None):
        self.publisher = publisher or RedisPublisher()
        self.channel = channel or settings.NOTIFICATION_CHANNEL

    def _publish(self, event) -> None:
        receivers = self.publisher.publish(self.channel, json.dumps(_payload(event), default=str))
        logger.debug(f"Published {event.type} to {receivers} subscriber(s)")

    def attempt_submitted(self, event: AttemptSubmittedEvent) -> None:
        self._publish(event)

    def quiz_published(self, event: QuizPublishedEvent) -> None:
        self._publish(event)


class RecordingNotifier:
    """Keeps events in memory; handy for tests and local tooling"""

    def __init__(self):
        self.events: List[Any] = []

    def attempt_submitted(self, event: AttemptSubmittedEvent) -> None:
        self.events.append(event)

    def quiz_published(self, event: QuizPublishedEvent) -> None:
        self.events.append(event)


def _payload(event) -> Dict[str, Any]:
    data = asdict(event)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


def notify_safely(notifier: Notifier, method: str, event) -> bool:
    """Invoke a notifier hook, logging instead of raising on failure"""
    try:
        getattr(notifier, method)(event)
        return True
    except Exception as e:
        logger.warning(
            f"Notifier {type(notifier).__name__}.{method} failed: {e}",
            extra={"event_type": getattr(event, "type", None)},
        )
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        return False


def build_notifier(backend: Optional[str] = None) -> Notifier:
    backend = (backend or settings.NOTIFIER_BACKEND).lower()
    if backend == "redis":
        return RedisNotifier()
    return LoggingNotifier()
