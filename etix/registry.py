"""
Event Ticket Registry

This module provides the registry that owns every event and ticket record,
enforces supply limits and ownership, and checks the caller's roles before
each mutation. All operations are serialized through a single lock; every
precondition is checked before state is touched, so a failed call leaves no
trace in the tables, the id counters or the notification log.
"""

import asyncio
from typing import Dict, List, Optional, Set

import structlog

from etix import policy
from etix.errors import (
    CapacityExceeded,
    InactiveResource,
    InvalidArgument,
    NotFound,
)
from etix.models.notifications import (
    Approval,
    ApprovalForAll,
    EventCreated,
    EventUpdated,
    MetadataUpdated,
    Notification,
    RoleGranted,
    RoleRevoked,
    TicketMinted,
    TicketRevoked,
    TicketTransferred,
)
from etix.models.registry import Event, Role, Ticket
from etix.notifications import NotificationLog
from etix.roles import RoleStore


logger = structlog.get_logger(__name__)


def _require_principal(value: Optional[str], field: str) -> str:
    if not value or not str(value).strip():
        raise InvalidArgument(f"{field} must be a non-empty principal")
    return value


def _require_name(name: str) -> str:
    if not isinstance(name, str):
        raise InvalidArgument(f"name must be a string, got {type(name).__name__}")
    return name


def _require_uri(uri: Optional[str], field: str) -> str:
    if uri is None:
        return ""
    if not isinstance(uri, str):
        raise InvalidArgument(f"{field} must be a string, got {type(uri).__name__}")
    return uri


def _require_supply(max_supply: int) -> int:
    # bool is an int subclass
    if isinstance(max_supply, bool) or not isinstance(max_supply, int):
        raise InvalidArgument(f"max_supply must be an integer, got {max_supply!r}")
    if max_supply < 0:
        raise InvalidArgument(f"max_supply must be >= 0, got {max_supply}")
    return max_supply


def _require_flag(value: bool, field: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgument(f"{field} must be a boolean, got {value!r}")
    return value


class TicketRegistry:
    """
    In-memory event and ticket registry.

    The initializing principal becomes the sole administrator. Event and
    ticket ids come from two independent counters owned by the instance,
    starting at 1 and never reused.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        admin: str,
        notifications: Optional[NotificationLog] = None,
    ):
        """
        Initialize the registry.

        Args:
            name: Display name (cosmetic)
            symbol: Display symbol (cosmetic)
            admin: Principal granted the administrator role
            notifications: Log receiving change records, a fresh one by default
        """
        _require_principal(admin, "admin")

        self._name = name
        self._symbol = symbol
        self.roles = RoleStore()
        self.notifications = notifications if notifications is not None else NotificationLog()

        self._events: Dict[int, Event] = {}
        self._tickets: Dict[int, Ticket] = {}
        self._balances: Dict[str, int] = {}
        self._token_approvals: Dict[int, str] = {}
        self._operators: Dict[str, Set[str]] = {}  # owner -> operators
        self._event_counter = 0
        self._ticket_counter = 0
        self._lock = asyncio.Lock()

        self.logger = logger.bind(registry=symbol)

        self.roles.grant(Role.ADMIN, admin)
        self._emit(RoleGranted(role=Role.ADMIN, principal=admin, sender=admin))
        self.logger.info("Registry initialized", name=name, admin=admin)

    @property
    def name(self) -> str:
        return self._name

    @property
    def symbol(self) -> str:
        return self._symbol

    # Roles

    async def has_role(self, role: Role, principal: str) -> bool:
        async with self._lock:
            return self.roles.has_role(role, principal)

    async def grant_role(self, caller: str, role: Role, principal: str) -> bool:
        """Grant a role; returns False when the principal already held it"""
        async with self._lock:
            policy.require(
                policy.can_administer_roles(self.roles, caller),
                "Caller is not an administrator",
            )
            _require_principal(principal, "principal")
            return self._grant(role, principal, caller)

    async def revoke_role(self, caller: str, role: Role, principal: str) -> bool:
        """
        Revoke a role; returns False when the principal did not hold it.

        Revoking the global organizer role does not affect the rights a
        principal derives from being named organizer of an event.
        """
        async with self._lock:
            policy.require(
                policy.can_administer_roles(self.roles, caller),
                "Caller is not an administrator",
            )
            return self._revoke(role, principal, caller)

    async def renounce_role(self, caller: str, role: Role) -> bool:
        async with self._lock:
            return self._revoke(role, caller, caller)

    async def role_members(self, role: Role) -> List[str]:
        async with self._lock:
            return self.roles.members(role)

    # Events

    async def create_event(
        self,
        caller: str,
        name: str,
        organizer: str,
        max_supply: int = 0,
        base_uri: str = "",
    ) -> int:
        """Create an event and grant its organizer the organizer role"""
        async with self._lock:
            policy.require(
                policy.can_create_event(self.roles, caller),
                "Only an administrator can create events",
            )
            _require_name(name)
            _require_principal(organizer, "organizer")
            _require_supply(max_supply)
            base_uri = _require_uri(base_uri, "base_uri")

            event_id = self._event_counter + 1
            event = Event(
                id=event_id,
                name=name,
                organizer=organizer,
                max_supply=max_supply,
                minted=0,
                base_uri=base_uri,
                active=True,
            )
            self._event_counter = event_id
            self._events[event_id] = event

            self._grant(Role.ORGANIZER, organizer, caller)
            self._emit(EventCreated(
                event_id=event_id,
                name=name,
                organizer=organizer,
                max_supply=max_supply,
            ))

            self.logger.info(
                "Event created",
                event_id=event_id,
                organizer=organizer,
                max_supply=max_supply,
            )
            return event_id

    async def update_event(
        self,
        caller: str,
        event_id: int,
        name: str,
        max_supply: int,
        base_uri: str,
        active: bool,
    ) -> Event:
        """
        Overwrite an event's mutable fields.

        The organizer is immutable. Lowering ``max_supply`` below the number of
        live tickets is accepted: existing tickets stay valid and further
        minting fails until supply is raised again or tickets are revoked.
        """
        async with self._lock:
            event = self._get_event(event_id)
            policy.require(
                policy.can_manage_event(self.roles, caller, event),
                "Only an administrator or the event organizer can update this event",
            )
            _require_name(name)
            _require_supply(max_supply)
            base_uri = _require_uri(base_uri, "base_uri")
            _require_flag(active, "active")

            event.name = name
            event.max_supply = max_supply
            event.base_uri = base_uri
            event.active = active

            if max_supply and event.minted > max_supply:
                self.logger.warning(
                    "Supply lowered below minted count, minting frozen",
                    event_id=event_id,
                    max_supply=max_supply,
                    minted=event.minted,
                )

            self._emit(EventUpdated(event_id=event_id))
            self.logger.info("Event updated", event_id=event_id, active=active)
            return event.model_copy()

    async def get_event(self, event_id: int) -> Event:
        async with self._lock:
            return self._get_event(event_id).model_copy()

    async def list_events(self) -> List[Event]:
        async with self._lock:
            return [self._events[i].model_copy() for i in sorted(self._events)]

    async def total_events(self) -> int:
        """Number of event ids issued"""
        async with self._lock:
            return self._event_counter

    # Tickets

    async def mint_ticket(self, caller: str, event_id: int, to: str, uri: str = "") -> int:
        """Mint a ticket for an event to ``to``; returns the new ticket id"""
        async with self._lock:
            event = self._get_event(event_id)
            if not event.active:
                raise InactiveResource(f"Event {event_id} is inactive")
            policy.require(
                policy.can_mint(self.roles, caller, event),
                "Only an organizer or administrator can mint tickets",
            )
            _require_principal(to, "to")
            if event.sold_out:
                raise CapacityExceeded(
                    f"Event {event_id} is sold out ({event.minted}/{event.max_supply})"
                )

            ticket_id = self._ticket_counter + 1
            ticket = Ticket(id=ticket_id, owner=to, event_id=event_id, uri=uri or "")
            self._ticket_counter = ticket_id
            self._tickets[ticket_id] = ticket
            self._balances[to] = self._balances.get(to, 0) + 1
            event.minted += 1

            self._emit(TicketMinted(
                event_id=event_id,
                ticket_id=ticket_id,
                to=to,
                uri=ticket.uri,
            ))

            self.logger.info(
                "Ticket minted",
                event_id=event_id,
                ticket_id=ticket_id,
                to=to,
                minted=event.minted,
            )
            return ticket_id

    async def revoke_ticket(self, caller: str, ticket_id: int) -> None:
        """Destroy a ticket and free its slot in the event's supply"""
        async with self._lock:
            ticket = self._get_ticket(ticket_id)
            event = self._get_event(ticket.event_id)
            policy.require(
                policy.can_manage_event(self.roles, caller, event),
                "Only an administrator or the event organizer can revoke tickets",
            )

            self._remove_ticket(ticket)

            # clamp: never below zero
            if event.minted > 0:
                event.minted -= 1
            else:
                self.logger.warning(
                    "Minted count already zero on revoke",
                    event_id=event.id,
                    ticket_id=ticket_id,
                )

            self._emit(TicketRevoked(ticket_id=ticket_id, event_id=event.id))
            self.logger.info("Ticket revoked", ticket_id=ticket_id, event_id=event.id)

    async def set_token_uri(self, caller: str, ticket_id: int, uri: str) -> None:
        """Overwrite a ticket's explicit URI; empty falls back to the base URI"""
        async with self._lock:
            ticket = self._get_ticket(ticket_id)
            event = self._get_event(ticket.event_id)
            policy.require(
                policy.can_manage_event(self.roles, caller, event),
                "Only an administrator or the event organizer can set ticket metadata",
            )

            ticket.uri = uri or ""
            self._emit(MetadataUpdated(ticket_id=ticket_id, uri=ticket.uri))
            self.logger.debug("Ticket URI set", ticket_id=ticket_id)

    async def resolve_uri(self, ticket_id: int) -> str:
        """
        Resolve the metadata location of a ticket.

        The explicit URI wins; otherwise the owning event's base URI followed
        by the decimal ticket id, or an empty string when no base is set.
        """
        async with self._lock:
            ticket = self._get_ticket(ticket_id)
            if ticket.uri:
                return ticket.uri

            base_uri = self._get_event(ticket.event_id).base_uri
            if not base_uri:
                return ""
            return f"{base_uri}{ticket_id}"

    async def transfer(self, caller: str, ticket_id: int, from_owner: str, to: str) -> None:
        """Move a ticket from its current owner to ``to``"""
        async with self._lock:
            ticket = self._get_ticket(ticket_id)
            policy.require(
                policy.can_operate_ticket(
                    caller,
                    ticket,
                    self._token_approvals.get(ticket_id),
                    self._is_operator(ticket.owner, caller),
                ),
                "Caller is not the owner, approved delegate or operator",
            )
            if from_owner != ticket.owner:
                raise InvalidArgument(f"Ticket {ticket_id} is not owned by {from_owner}")
            _require_principal(to, "to")

            self._token_approvals.pop(ticket_id, None)
            if to != from_owner:
                self._balances[from_owner] -= 1
                self._balances[to] = self._balances.get(to, 0) + 1
                ticket.owner = to

            self._emit(TicketTransferred(ticket_id=ticket_id, from_owner=from_owner, to=to))
            self.logger.info("Ticket transferred", ticket_id=ticket_id, from_owner=from_owner, to=to)

    async def approve(self, caller: str, approved: Optional[str], ticket_id: int) -> None:
        """Set or clear (``approved=None``) the single delegate of a ticket"""
        async with self._lock:
            ticket = self._get_ticket(ticket_id)
            policy.require(
                caller == ticket.owner or self._is_operator(ticket.owner, caller),
                "Caller is not the owner or an approved operator",
            )
            if approved == ticket.owner:
                raise InvalidArgument("Cannot approve the current owner")

            if approved:
                self._token_approvals[ticket_id] = approved
            else:
                self._token_approvals.pop(ticket_id, None)

            self._emit(Approval(owner=ticket.owner, approved=approved or None, ticket_id=ticket_id))

    async def get_approved(self, ticket_id: int) -> Optional[str]:
        async with self._lock:
            self._get_ticket(ticket_id)
            return self._token_approvals.get(ticket_id)

    async def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        """Allow or forbid ``operator`` to manage every ticket of the caller"""
        async with self._lock:
            _require_principal(caller, "caller")
            _require_principal(operator, "operator")
            if operator == caller:
                raise InvalidArgument("Cannot set approval for self")

            operators = self._operators.setdefault(caller, set())
            if approved:
                operators.add(operator)
            else:
                operators.discard(operator)

            self._emit(ApprovalForAll(owner=caller, operator=operator, approved=approved))

    async def is_approved_for_all(self, owner: str, operator: str) -> bool:
        async with self._lock:
            return self._is_operator(owner, operator)

    async def get_ticket(self, ticket_id: int) -> Ticket:
        async with self._lock:
            return self._get_ticket(ticket_id).model_copy()

    async def owner_of(self, ticket_id: int) -> str:
        async with self._lock:
            return self._get_ticket(ticket_id).owner

    async def ticket_event(self, ticket_id: int) -> int:
        """Owning event id, or 0 when the ticket does not exist"""
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            return ticket.event_id if ticket else 0

    async def balance_of(self, principal: str) -> int:
        async with self._lock:
            _require_principal(principal, "principal")
            return self._balances.get(principal, 0)

    async def tickets_of(self, principal: str) -> List[int]:
        async with self._lock:
            return sorted(t.id for t in self._tickets.values() if t.owner == principal)

    async def total_tickets(self) -> int:
        """Number of ticket ids issued, revoked tickets included"""
        async with self._lock:
            return self._ticket_counter

    async def get_stats(self) -> Dict[str, int]:
        """Get registry statistics"""
        async with self._lock:
            return {
                "total_events": self._event_counter,
                "active_events": sum(1 for e in self._events.values() if e.active),
                "total_tickets": self._ticket_counter,
                "live_tickets": len(self._tickets),
                "last_notification_seq": self.notifications.last_seq,
            }

    # Private methods

    def _get_event(self, event_id: int) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise NotFound(f"Event {event_id} not found")
        return event

    def _get_ticket(self, ticket_id: int) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {ticket_id} not found")
        return ticket

    def _is_operator(self, owner: str, operator: str) -> bool:
        return bool(operator) and operator in self._operators.get(owner, set())

    def _remove_ticket(self, ticket: Ticket) -> None:
        del self._tickets[ticket.id]
        self._token_approvals.pop(ticket.id, None)
        remaining = self._balances.get(ticket.owner, 0) - 1
        if remaining > 0:
            self._balances[ticket.owner] = remaining
        else:
            self._balances.pop(ticket.owner, None)

    def _grant(self, role: Role, principal: str, sender: str) -> bool:
        granted = self.roles.grant(role, principal)
        if granted:
            self._emit(RoleGranted(role=role, principal=principal, sender=sender))
        return granted

    def _revoke(self, role: Role, principal: str, sender: str) -> bool:
        revoked = self.roles.revoke(role, principal)
        if revoked:
            self._emit(RoleRevoked(role=role, principal=principal, sender=sender))
        return revoked

    def _emit(self, notification: Notification) -> Notification:
        return self.notifications.append(notification)
