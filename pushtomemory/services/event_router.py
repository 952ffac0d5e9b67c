"""
Event router - decides what a verified GitHub delivery should do.

ping               -> acknowledge (GitHub confirming the hook)
push with commits  -> build a reflection
push, no commits   -> acknowledge (branch deletion, empty push)
anything else      -> acknowledge
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pushtomemory.schemas.github_events import GithubEvent, parse_event

PING_MESSAGE = "Webhook verified successfully"
PROCESSED_MESSAGE = "Webhook processed successfully"


class EventAction(str, Enum):
    ACKNOWLEDGE = "acknowledge"
    BUILD_REFLECTION = "build_reflection"


@dataclass
class RoutedEvent:
    action: EventAction
    message: str
    event: Optional[GithubEvent] = None


def route_event(event_type: str, payload: dict) -> RoutedEvent:
    """Raises MalformedPayloadError if a ping/push payload fails validation."""
    event = parse_event(event_type, payload)

    if event is None:
        return RoutedEvent(EventAction.ACKNOWLEDGE, PROCESSED_MESSAGE)

    if event.kind == "ping":
        return RoutedEvent(EventAction.ACKNOWLEDGE, PING_MESSAGE, event)

    if event.commits:
        return RoutedEvent(EventAction.BUILD_REFLECTION, PROCESSED_MESSAGE, event)

    return RoutedEvent(EventAction.ACKNOWLEDGE, PROCESSED_MESSAGE, event)
