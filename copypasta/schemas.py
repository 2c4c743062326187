"""Pydantic schemas for the pasta REST API and streaming payloads."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr


class UserInfo(BaseModel):
    """Identity returned by GET /api."""
    username: str


class LoginResponse(BaseModel):
    """Body of a 403 response: where to obtain a token."""
    login_url: str = Field(min_length=1)


class Pasta(BaseModel):
    """A stored snippet."""
    content: str
    copied_count: int = 0
    perma_id: str
    id: int
    inserted_at: str


class CreatePastaRequest(BaseModel):
    """Request body for POST /api/create."""
    content: str


class CreateStreamResponse(BaseModel):
    """Response model for GET /api/stream."""
    name: str


class BytesPayload(BaseModel):
    """Payload of a `bytes` event: one base64-encoded chunk."""
    data: str


class DonePayload(BaseModel):
    """Payload of a `done` event; `error` is only present on read failure."""
    error: Optional[bool] = None


class FrameEnvelope(BaseModel):
    """Outer shape of a channel text frame."""
    topic: str
    event: str
    payload: Any = None
    ref: Optional[Union[StrictStr, StrictInt]] = None
