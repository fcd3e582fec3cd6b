"""Provider webhook payload shapes.

The provider posts call updates in more than one layout: ids either at the
top level or nested under ``execution``, call results either flat or under
``result`` / ``recording``. Each field lists the shapes it can arrive in, in
priority order; the first non-empty match wins.
"""

from dataclasses import dataclass
from typing import Any

FieldPath = tuple[str, ...]

EXECUTION_ID_SHAPES: tuple[FieldPath, ...] = (
    ("execution_id",),
    ("id",),
    ("execution", "id"),
)
AGENT_ID_SHAPES: tuple[FieldPath, ...] = (
    ("agent_id",),
    ("execution", "agent_id"),
    ("agent",),
    ("agent", "id"),
)
TRANSCRIPT_SHAPES: tuple[FieldPath, ...] = (
    ("transcript",),
    ("result", "transcript"),
    ("execution", "transcript"),
)
RECORDING_URL_SHAPES: tuple[FieldPath, ...] = (
    ("recording_url",),
    ("result", "recording_url"),
    ("recording", "url"),
    ("execution", "recording_url"),
)
DURATION_SHAPES: tuple[FieldPath, ...] = (
    ("duration",),
    ("result", "duration"),
    ("execution", "duration"),
)


def _resolve(payload: dict, path: FieldPath) -> Any:
    node: Any = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def first_scalar(payload: dict, shapes: tuple[FieldPath, ...]) -> str | None:
    """First non-empty scalar found along ``shapes``, as a string."""
    for path in shapes:
        value = _resolve(payload, path)
        if value is None or value == "" or isinstance(value, (dict, list, bool)):
            continue
        return str(value)
    return None


@dataclass(frozen=True)
class WebhookEvent:
    """Normalized call update extracted from any known payload shape."""

    execution_id: str | None
    agent_id: str | None
    transcript: str
    recording_url: str | None
    duration: str | None

    @classmethod
    def from_payload(cls, payload: dict) -> "WebhookEvent":
        return cls(
            execution_id=first_scalar(payload, EXECUTION_ID_SHAPES),
            agent_id=first_scalar(payload, AGENT_ID_SHAPES),
            transcript=first_scalar(payload, TRANSCRIPT_SHAPES) or "",
            recording_url=first_scalar(payload, RECORDING_URL_SHAPES),
            duration=first_scalar(payload, DURATION_SHAPES),
        )
