"""Registry record models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Roles a principal can hold."""

    ADMIN = "admin"
    ORGANIZER = "organizer"


class Event(BaseModel):
    """A ticketed occasion."""

    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(..., ge=1, description="Event identifier, assigned by the registry")
    name: str
    organizer: str = Field(..., description="Principal holding organizer rights over this event")
    max_supply: int = Field(default=0, ge=0, description="Ticket limit, 0 means unlimited")
    minted: int = Field(default=0, ge=0, description="Live tickets attributed to this event")
    base_uri: str = ""
    active: bool = True

    @property
    def unlimited(self) -> bool:
        return self.max_supply == 0

    @property
    def sold_out(self) -> bool:
        """True when no further ticket can be minted under the supply limit."""
        return not self.unlimited and self.minted >= self.max_supply


class Ticket(BaseModel):
    """A minted entry pass owned by exactly one principal."""

    id: int = Field(..., ge=1, description="Global ticket identifier")
    owner: str
    event_id: int = Field(..., ge=1)
    uri: str = Field(default="", description="Explicit metadata location, empty to fall back to the event base URI")
