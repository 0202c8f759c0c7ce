"""
Identity & Role Store

Tracks which principals hold which roles. Grants and revocations are
idempotent: the return value tells the caller whether anything changed, so
change records are only emitted for effective updates.
"""

from typing import Dict, List, Set

import structlog

from etix.models.registry import Role


logger = structlog.get_logger(__name__)


class RoleStore:
    """In-memory set of (role, principal) grants"""

    def __init__(self):
        self._members: Dict[Role, Set[str]] = {role: set() for role in Role}
        self.logger = logger.bind(component="role_store")

    def has_role(self, role: Role, principal: str) -> bool:
        if not principal:
            return False
        return principal in self._members.get(Role(role), set())

    def has_any_role(self, principal: str, *roles: Role) -> bool:
        """True if the principal holds at least one of the given roles"""
        return any(self.has_role(role, principal) for role in roles)

    def grant(self, role: Role, principal: str) -> bool:
        """Grant a role; returns False if it was already held"""
        members = self._members[Role(role)]
        if principal in members:
            return False

        members.add(principal)
        self.logger.debug("Role granted", role=Role(role).value, principal=principal)
        return True

    def revoke(self, role: Role, principal: str) -> bool:
        """Revoke a role; returns False if it was not held"""
        members = self._members[Role(role)]
        if principal not in members:
            return False

        members.discard(principal)
        self.logger.debug("Role revoked", role=Role(role).value, principal=principal)
        return True

    def members(self, role: Role) -> List[str]:
        return sorted(self._members[Role(role)])
