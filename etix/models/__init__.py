"""Data models for the ticket registry."""

from etix.models.config import EtixConfig
from etix.models.registry import Event, Role, Ticket

__all__ = ["EtixConfig", "Event", "Role", "Ticket"]
