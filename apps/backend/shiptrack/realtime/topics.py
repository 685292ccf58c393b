"""Topic naming for the realtime layer.

Every room a publisher targets is built by one of the constructors below so a
typo can't silently route an event to a room nobody joins. Client-supplied topic
ids (the `join` frame) only go through `validate_topic`: authorization is the
HTTP layer's job.
"""

from __future__ import annotations

from typing import Literal, get_args

from shiptrack.errors import InvalidTopic


Entity = Literal["shipments", "users", "branches", "rates"]

ENTITIES: tuple[str, ...] = get_args(Entity)

MAX_TOPIC_LENGTH = 200


def tracking_topic(tracking_number: str) -> str:
    return validate_topic(tracking_number.strip())


def list_topic(entity: Entity) -> str:
    if entity not in ENTITIES:
        raise ValueError(f"unknown entity list: {entity!r}")
    return f"{entity}_room"


def list_event(entity: Entity) -> str:
    """Invalidation event name sent on `list_topic(entity)`."""
    if entity not in ENTITIES:
        raise ValueError(f"unknown entity list: {entity!r}")
    return f"{entity}_updated"


def client_topic(account_id: int) -> str:
    return f"client_{int(account_id)}"


def session_topic(session_id: str) -> str:
    if not session_id:
        raise ValueError("session_id must be non-empty")
    return validate_topic(f"session_{session_id}")


def validate_topic(topic: object) -> str:
    """Return `topic` unchanged if it is a well-formed topic id, else raise InvalidTopic."""
    if not isinstance(topic, str) or not topic:
        raise InvalidTopic("topic must be a non-empty string")
    if len(topic) > MAX_TOPIC_LENGTH:
        raise InvalidTopic(f"topic longer than {MAX_TOPIC_LENGTH} characters")
    if any(ch.isspace() or not ch.isprintable() for ch in topic):
        raise InvalidTopic("topic must not contain whitespace or control characters")
    return topic
