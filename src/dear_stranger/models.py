"""Data models for letters and reports.

Stored documents and JSON payloads use camelCase keys (``senderUuid``,
``inResponseTo``...). The models expose snake_case attributes and map them
through pydantic aliases.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .errors import MalformedInput

__all__ = [
    "Message",
    "MessageCreate",
    "Report",
    "ReportCreate",
    "new_uuid",
    "read_documents",
]

logger = logging.getLogger(__name__)


def new_uuid() -> str:
    """Return a fresh random identifier."""
    return str(uuid4())


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Return the camelCase mapping written to the database."""
        return self.model_dump(by_alias=True)


class Message(_Document):
    """An anonymous letter as stored and returned by the API.

    Only ``uuid`` is guaranteed. Older records may be missing any of the other
    fields, so they are all optional here; new letters go through
    :class:`MessageCreate` first.
    """

    uuid: str = Field(default_factory=new_uuid)
    in_response_to: str | None = None
    body: str | None = None
    timestamp: int | float | None = None
    hue: str | None = None
    sender_uuid: str | None = None

    @field_validator("uuid", mode="before")
    @classmethod
    def generate_missing_uuid(cls, value):
        return value or new_uuid()


class Report(_Document):
    """One user flagging a letter."""

    reporter_uuid: str | None = None
    letter_uuid: str | None = None
    explanation: str | None = None


class MessageCreate(_Document):
    """Request body accepted by ``POST /messages``."""

    uuid: str | None = Field(
        default=None,
        description="Client supplied identifier. Generated when omitted.",
    )
    in_response_to: str | None = Field(
        default=None, description="Identifier of the letter being answered."
    )
    body: str = Field(..., description="Text of the letter.")
    timestamp: int | float = Field(
        ..., description="Seconds since the epoch, as reported by the client."
    )
    hue: str = Field(..., description="Mood colour token.")
    sender_uuid: str = Field(..., description="Pseudonymous sender identifier.")

    def to_message(self) -> Message:
        """Build the letter to persist.

        Raises:
            MalformedInput: If the body is blank.
        """
        if not self.body.strip():
            raise MalformedInput("Message body cannot be empty")
        return Message(
            uuid=self.uuid,
            in_response_to=self.in_response_to,
            body=self.body,
            timestamp=self.timestamp,
            hue=self.hue,
            sender_uuid=self.sender_uuid,
        )


class ReportCreate(_Document):
    """Request body accepted by ``POST /reports``."""

    reporter_uuid: str = Field(..., description="Identifier of the reporting client.")
    letter_uuid: str = Field(..., description="Identifier of the reported letter.")
    explanation: str | None = Field(
        default=None, description="Why the letter is being reported."
    )

    def to_report(self) -> Report:
        """Build the report to persist.

        Raises:
            MalformedInput: If either identifier is blank.
        """
        if not self.reporter_uuid.strip() or not self.letter_uuid.strip():
            raise MalformedInput("reporterUuid and letterUuid cannot be empty")
        return Report(
            reporter_uuid=self.reporter_uuid,
            letter_uuid=self.letter_uuid,
            explanation=self.explanation,
        )


DocumentT = TypeVar("DocumentT", bound=_Document)


def read_documents(model: type[DocumentT], documents: Iterable[dict]) -> list[DocumentT]:
    """Parse stored documents, skipping the ones ``model`` cannot read.

    Older clients wrote whatever they were sent, so a collection can hold
    values of the wrong type. One such record must not hide the others.
    """
    records = []
    for document in documents:
        try:
            records.append(model.model_validate(document))
        except ValidationError as e:
            logger.warning(
                "Skipping unreadable %s document %r: %s",
                model.__name__,
                document.get("uuid") or document.get("letterUuid"),
                e.errors(include_url=False),
            )
    return records
