"""Channel wire frames and streaming payload encoding."""

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from copypasta.constants import STREAM_TOPIC_PREFIX, SYSTEM_EVENTS
from copypasta.exceptions import FatalProtocolError
from copypasta.schemas import BytesPayload, DonePayload, FrameEnvelope


@dataclass(frozen=True)
class ChannelEvent:
    """An event observed on a joined topic."""
    topic: str
    kind: str
    payload: dict = field(default_factory=dict)
    ref: Optional[str] = None

    @property
    def is_system(self) -> bool:
        """True for channel-defined events (replies, errors, close)."""
        return self.kind in SYSTEM_EVENTS

    def is_custom(self, name: str) -> bool:
        """True if this is the application event `name`."""
        return not self.is_system and self.kind == name


@dataclass(frozen=True)
class ChannelFrame:
    """One JSON text frame of the channel socket."""
    topic: str
    event: str
    payload: Any
    ref: Optional[str] = None

    def to_json(self) -> str:
        """Serialize to JSON text."""
        return json.dumps({
            'topic': self.topic,
            'event': self.event,
            'payload': self.payload,
            'ref': self.ref,
        })

    @classmethod
    def from_json(cls, data: str) -> 'ChannelFrame':
        """
        Deserialize from JSON text.

        Raises:
            FatalProtocolError: If the frame is not a JSON object with string topic and event
        """
        try:
            envelope = FrameEnvelope.model_validate_json(data)
        except ValidationError as e:
            raise FatalProtocolError(f"Malformed channel frame {data[:200]!r}: {e}") from e
        return cls(
            topic=envelope.topic,
            event=envelope.event,
            payload=envelope.payload,
            ref=str(envelope.ref) if envelope.ref is not None else None,
        )

    def to_event(self) -> ChannelEvent:
        payload = self.payload if isinstance(self.payload, dict) else {}
        return ChannelEvent(topic=self.topic, kind=self.event, payload=payload, ref=self.ref)


def topic_for_stream(name: str) -> str:
    """Channel topic carrying the stream `name`."""
    if name.startswith(STREAM_TOPIC_PREFIX):
        return name
    return f"{STREAM_TOPIC_PREFIX}{name}"


def encode_chunk(chunk: bytes) -> dict:
    """Build the `bytes` payload for one chunk."""
    return BytesPayload(data=base64.b64encode(chunk).decode('ascii')).model_dump()


def decode_chunk(payload: Any) -> bytes:
    """
    Extract the chunk carried by a `bytes` payload.

    Raises:
        FatalProtocolError: If the `data` field is missing or not valid base64
    """
    try:
        parsed = BytesPayload.model_validate(payload)
    except ValidationError as e:
        raise FatalProtocolError(f"Malformed bytes payload: {e}") from e
    try:
        return base64.b64decode(parsed.data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FatalProtocolError(f"Invalid base64 in bytes payload: {e}") from e


def done_payload(error: bool = False) -> dict:
    """Build the `done` payload; the error flag is omitted on clean EOF."""
    return DonePayload(error=True if error else None).model_dump(exclude_none=True)
