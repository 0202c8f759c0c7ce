"""Access-controlled registry of events and the tickets minted against them."""

from etix.errors import (
    CapacityExceeded,
    ErrorCode,
    InactiveResource,
    InvalidArgument,
    NotFound,
    RegistryError,
    Unauthorized,
)
from etix.models.registry import Event, Role, Ticket
from etix.notifications import NotificationLog
from etix.registry import TicketRegistry

__version__ = "1.0.0"

__all__ = [
    "CapacityExceeded",
    "ErrorCode",
    "Event",
    "InactiveResource",
    "InvalidArgument",
    "NotFound",
    "NotificationLog",
    "RegistryError",
    "Role",
    "Ticket",
    "TicketRegistry",
    "Unauthorized",
]
