"""Structured change records emitted by the registry."""

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from etix.models.registry import Role


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Notification(BaseModel):
    """Common envelope fields for every change record."""

    kind: str
    seq: Optional[int] = Field(default=None, description="Position in the log, assigned on append")
    timestamp: datetime = Field(default_factory=_utcnow)


class EventCreated(Notification):
    kind: Literal["EventCreated"] = "EventCreated"
    event_id: int
    name: str
    organizer: str
    max_supply: int


class EventUpdated(Notification):
    kind: Literal["EventUpdated"] = "EventUpdated"
    event_id: int


class TicketMinted(Notification):
    kind: Literal["TicketMinted"] = "TicketMinted"
    event_id: int
    ticket_id: int
    to: str
    uri: str


class TicketRevoked(Notification):
    kind: Literal["TicketRevoked"] = "TicketRevoked"
    ticket_id: int
    event_id: int


class TicketTransferred(Notification):
    kind: Literal["TicketTransferred"] = "TicketTransferred"
    ticket_id: int
    from_owner: str
    to: str


class MetadataUpdated(Notification):
    kind: Literal["MetadataUpdated"] = "MetadataUpdated"
    ticket_id: int
    uri: str


class Approval(Notification):
    kind: Literal["Approval"] = "Approval"
    owner: str
    approved: Optional[str] = None
    ticket_id: int


class ApprovalForAll(Notification):
    kind: Literal["ApprovalForAll"] = "ApprovalForAll"
    owner: str
    operator: str
    approved: bool


class RoleGranted(Notification):
    kind: Literal["RoleGranted"] = "RoleGranted"
    role: Role
    principal: str
    sender: str


class RoleRevoked(Notification):
    kind: Literal["RoleRevoked"] = "RoleRevoked"
    role: Role
    principal: str
    sender: str


AnyNotification = Annotated[
    Union[
        EventCreated,
        EventUpdated,
        TicketMinted,
        TicketRevoked,
        TicketTransferred,
        MetadataUpdated,
        Approval,
        ApprovalForAll,
        RoleGranted,
        RoleRevoked,
    ],
    Field(discriminator="kind"),
]
