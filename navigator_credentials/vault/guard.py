"""
Access Guard: Organization membership and capability checks.

Every vault operation calls ``AccessGuard.authorize`` before touching
storage or the cipher. Membership is always checked first, so callers outside
the organization learn nothing about which capabilities exist.
"""
import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from .exceptions import (
    PermissionDenied,
    StorageError,
    UserNotInOrganization,
    VaultError,
)

logger = logging.getLogger("navigator.credentials")

SUPER_ADMIN = "super_admin"


class Capability(str, enum.Enum):
    """Credential actions an actor may be granted inside an organization."""

    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"

    @property
    def permission(self) -> str:
        return _PERMISSIONS[self]


_PERMISSIONS = {
    Capability.VIEW: "can_see_all_credentials",
    Capability.CREATE: "can_create_credentials",
    Capability.EDIT: "can_edit_credentials",
    Capability.DELETE: "can_delete_credentials",
}


class AccessGuard(ABC):
    """Authorization backend seen by the vault.

    Subclasses answer two questions; ``authorize`` fixes the order in which
    they are asked.
    """

    @abstractmethod
    async def is_member(self, user_id: str, organization_id: str) -> bool:
        ...

    @abstractmethod
    async def has_permission(
        self, user_id: str, organization_id: str, permission: str
    ) -> bool:
        ...

    async def authorize(
        self, user_id: str, organization_id: str, capability: Capability
    ) -> None:
        """Raise unless the actor may perform ``capability`` in the organization.

        Raises:
            UserNotInOrganization: actor is not a member.
            PermissionDenied: actor lacks the capability.
            StorageError: the backend could not answer.
        """
        capability = Capability(capability)
        try:
            belongs = await self.is_member(user_id, organization_id)
        except VaultError:
            raise
        except Exception as err:
            logger.error(
                "Membership lookup failed: user=%s org=%s", user_id, organization_id
            )
            raise StorageError("Organization membership lookup failed") from err
        if not belongs:
            logger.warning(
                "Access denied, not a member: user=%s org=%s", user_id, organization_id
            )
            raise UserNotInOrganization(user_id, organization_id)

        try:
            allowed = await self.has_permission(
                user_id, organization_id, capability.permission
            )
        except VaultError:
            raise
        except Exception as err:
            logger.error(
                "Permission lookup failed: user=%s org=%s", user_id, organization_id
            )
            raise StorageError("Permission lookup failed") from err
        if not allowed:
            logger.warning(
                "Access denied: user=%s org=%s capability=%s",
                user_id, organization_id, capability.value,
            )
            raise PermissionDenied(capability.value)


class StaticAccessGuard(AccessGuard):
    """In-memory membership and grants.

    Grants are stored per (user, organization) as capabilities; the
    ``super_admin`` permission name grants everything.
    """

    def __init__(self):
        self._members: set[tuple[str, str]] = set()
        self._grants: dict[tuple[str, str], set[str]] = {}

    def add_member(
        self,
        user_id: str,
        organization_id: str,
        capabilities: Iterable[Any] = (),
    ) -> None:
        self._members.add((user_id, organization_id))
        self.grant(user_id, organization_id, *capabilities)

    def remove_member(self, user_id: str, organization_id: str) -> None:
        self._members.discard((user_id, organization_id))
        self._grants.pop((user_id, organization_id), None)

    def grant(self, user_id: str, organization_id: str, *capabilities: Any) -> None:
        permissions = self._grants.setdefault((user_id, organization_id), set())
        for cap in capabilities:
            permissions.add(cap if cap == SUPER_ADMIN else Capability(cap).permission)

    def revoke(self, user_id: str, organization_id: str, *capabilities: Any) -> None:
        permissions = self._grants.get((user_id, organization_id), set())
        for cap in capabilities:
            permissions.discard(cap if cap == SUPER_ADMIN else Capability(cap).permission)

    async def is_member(self, user_id: str, organization_id: str) -> bool:
        return (user_id, organization_id) in self._members

    async def has_permission(
        self, user_id: str, organization_id: str, permission: str
    ) -> bool:
        granted = self._grants.get((user_id, organization_id), set())
        return permission in granted or SUPER_ADMIN in granted


# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_MEMBERSHIP = """
SELECT 1 FROM organization_members
WHERE user_id = $1 AND org_id = $2
"""

_SELECT_PERMISSION = """
SELECT 1 FROM user_permissions
WHERE user_id = $1 AND organization_uuid = $2
  AND permission_name IN ($3, $4)
LIMIT 1
"""


class DatabaseAccessGuard(AccessGuard):
    """Membership and permissions read from the platform tables.

    Args:
        db_pool: asyncpg-compatible connection pool.
    """

    def __init__(self, db_pool: Any):
        self._db = db_pool

    async def is_member(self, user_id: str, organization_id: str) -> bool:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(_SELECT_MEMBERSHIP, user_id, organization_id)
        return row is not None

    async def has_permission(
        self, user_id: str, organization_id: str, permission: str
    ) -> bool:
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(
                _SELECT_PERMISSION, user_id, organization_id, permission, SUPER_ADMIN,
            )
        return row is not None
