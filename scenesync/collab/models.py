"""
Wire models for scene mutations.

Field names are snake_case in Python and camelCase on the wire; dump with
``by_alias=True`` when producing canonical payloads.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Vector3(_WireModel):
    x: float
    y: float
    z: float


def _zero() -> Vector3:
    return Vector3(x=0.0, y=0.0, z=0.0)


def _one() -> Vector3:
    return Vector3(x=1.0, y=1.0, z=1.0)


class TransformState(_WireModel):
    position: Vector3
    rotation: Vector3
    scale: Vector3
    mode: Literal["translate", "rotate", "scale"] = "translate"

    @classmethod
    def default(cls) -> "TransformState":
        return cls(position=_zero(), rotation=_zero(), scale=_one())


# Older clients send userId/userName for the author.
AUTHOR_ID = AliasChoices("authorId", "userId")
AUTHOR_NAME = AliasChoices("authorName", "userName")


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


class AnnotationIn(_WireModel):
    id: Optional[str] = None
    position: Vector3
    text: str
    author_id: Optional[str] = Field(None, validation_alias=AUTHOR_ID)
    author_name: Optional[str] = Field(None, validation_alias=AUTHOR_NAME)
    created_at: Optional[str] = Field(None, alias="createdAt")

    @field_validator("text")
    @classmethod
    def text_present(cls, v: str) -> str:
        return _require_text(v)


class ChatPostIn(_WireModel):
    # Client-supplied ``id`` and ``timestamp`` are dropped by ``extra="ignore"``.
    text: str
    author_id: str = Field(..., validation_alias=AUTHOR_ID)
    author_name: Optional[str] = Field(None, validation_alias=AUTHOR_NAME)

    @field_validator("text", "author_id")
    @classmethod
    def value_present(cls, v: str) -> str:
        return _require_text(v)


class ChatDeleteIn(_WireModel):
    message_id: str = Field(..., alias="messageId")

    @field_validator("message_id")
    @classmethod
    def id_present(cls, v: str) -> str:
        return _require_text(v)


__all__ = [
    "Vector3",
    "TransformState",
    "AnnotationIn",
    "ChatPostIn",
    "ChatDeleteIn",
]
