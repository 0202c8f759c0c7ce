"""
Authorization predicates

One plain boolean predicate per registry operation, evaluated against the
role store. The registry calls ``require`` with the predicate result before
touching any state.
"""

from typing import Optional

from etix.errors import Unauthorized
from etix.models.registry import Event, Role, Ticket
from etix.roles import RoleStore


def is_admin(roles: RoleStore, caller: str) -> bool:
    return roles.has_role(Role.ADMIN, caller)


def is_event_organizer(caller: str, event: Event) -> bool:
    return bool(caller) and caller == event.organizer


def can_create_event(roles: RoleStore, caller: str) -> bool:
    return is_admin(roles, caller)


def can_manage_event(roles: RoleStore, caller: str, event: Event) -> bool:
    """Update the event, revoke its tickets, or rewrite their metadata"""
    return is_admin(roles, caller) or is_event_organizer(caller, event)


def can_mint(roles: RoleStore, caller: str, event: Event) -> bool:
    """Event organizer, any principal holding the organizer role, or an admin"""
    return (
        is_event_organizer(caller, event)
        or roles.has_any_role(caller, Role.ORGANIZER, Role.ADMIN)
    )


def can_administer_roles(roles: RoleStore, caller: str) -> bool:
    return is_admin(roles, caller)


def can_operate_ticket(
    caller: str,
    ticket: Ticket,
    approved: Optional[str],
    operator_approved: bool,
) -> bool:
    """Owner, the ticket's approved delegate, or an operator approved for all"""
    if not caller:
        return False
    return caller == ticket.owner or caller == approved or operator_approved


def require(allowed: bool, message: str) -> None:
    """Raise Unauthorized unless the predicate held"""
    if not allowed:
        raise Unauthorized(message)
