"""
Tests for the access guard.

Tests cover:
- Capability to permission-name mapping
- Membership checked before capability
- Static grants, revocation and super_admin
- Backend failures surfacing as StorageError
- DatabaseAccessGuard queries against an asyncpg-like pool
"""
import pytest

from navigator_credentials.vault import (
    Capability,
    DatabaseAccessGuard,
    PermissionDenied,
    StaticAccessGuard,
    StorageError,
    UserNotInOrganization,
)
from navigator_credentials.vault.guard import AccessGuard

from .conftest import ADMIN, ADMIN_B, ORG_A, ORG_B, OUTSIDER, VIEWER, FakePool


class RecordingGuard(AccessGuard):
    """Guard that records which questions were asked."""

    def __init__(self, member: bool, allowed: bool):
        self.member = member
        self.allowed = allowed
        self.calls = []

    async def is_member(self, user_id, organization_id):
        self.calls.append("is_member")
        return self.member

    async def has_permission(self, user_id, organization_id, permission):
        self.calls.append(("has_permission", permission))
        return self.allowed


class FailingGuard(AccessGuard):
    async def is_member(self, user_id, organization_id):
        raise ConnectionError("db down")

    async def has_permission(self, user_id, organization_id, permission):
        return True


class TestCapability:
    """Tests for Capability."""

    def test_permission_names(self):
        """Test each capability maps to its stored permission name."""
        assert Capability.VIEW.permission == "can_see_all_credentials"
        assert Capability.CREATE.permission == "can_create_credentials"
        assert Capability.EDIT.permission == "can_edit_credentials"
        assert Capability.DELETE.permission == "can_delete_credentials"

    def test_from_string(self):
        """Test capabilities can be given by value."""
        assert Capability("view") is Capability.VIEW


class TestAuthorizeOrder:
    """Membership is evaluated before capability."""

    @pytest.mark.asyncio
    async def test_non_member_never_checks_permission(self):
        """Test a non-member fails without a permission lookup."""
        guard = RecordingGuard(member=False, allowed=True)
        with pytest.raises(UserNotInOrganization):
            await guard.authorize(OUTSIDER, ORG_A, Capability.VIEW)
        assert guard.calls == ["is_member"]

    @pytest.mark.asyncio
    async def test_member_without_capability(self):
        """Test a member without the capability gets PermissionDenied."""
        guard = RecordingGuard(member=True, allowed=False)
        with pytest.raises(PermissionDenied) as exc:
            await guard.authorize(VIEWER, ORG_A, Capability.DELETE)
        assert exc.value.capability == "delete"
        assert guard.calls == ["is_member", ("has_permission", "can_delete_credentials")]

    @pytest.mark.asyncio
    async def test_allowed(self):
        """Test authorize returns quietly when both checks pass."""
        guard = RecordingGuard(member=True, allowed=True)
        assert await guard.authorize(ADMIN, ORG_A, "edit") is None

    @pytest.mark.asyncio
    async def test_backend_failure_is_storage_error(self):
        """Test lookup exceptions become StorageError."""
        with pytest.raises(StorageError) as exc:
            await FailingGuard().authorize(ADMIN, ORG_A, Capability.VIEW)
        assert isinstance(exc.value.__cause__, ConnectionError)
        assert exc.value.retryable is True


class TestStaticAccessGuard:
    """Tests for StaticAccessGuard."""

    @pytest.mark.asyncio
    async def test_granted_capabilities(self, guard):
        """Test admin holds every capability."""
        for cap in Capability:
            await guard.authorize(ADMIN, ORG_A, cap)

    @pytest.mark.asyncio
    async def test_viewer_limited(self, guard):
        """Test viewer can view but not create."""
        await guard.authorize(VIEWER, ORG_A, Capability.VIEW)
        with pytest.raises(PermissionDenied):
            await guard.authorize(VIEWER, ORG_A, Capability.CREATE)

    @pytest.mark.asyncio
    async def test_membership_is_per_organization(self, guard):
        """Test a member of one org is an outsider in another."""
        with pytest.raises(UserNotInOrganization):
            await guard.authorize(ADMIN, ORG_B, Capability.VIEW)

    @pytest.mark.asyncio
    async def test_super_admin(self, guard):
        """Test super_admin grants all capabilities."""
        for cap in Capability:
            await guard.authorize(ADMIN_B, ORG_B, cap)

    @pytest.mark.asyncio
    async def test_revoke(self, guard):
        """Test revoked capability is denied."""
        guard.revoke(ADMIN, ORG_A, Capability.DELETE)
        with pytest.raises(PermissionDenied):
            await guard.authorize(ADMIN, ORG_A, Capability.DELETE)

    @pytest.mark.asyncio
    async def test_remove_member(self, guard):
        """Test a removed member is no longer in the organization."""
        guard.remove_member(VIEWER, ORG_A)
        with pytest.raises(UserNotInOrganization):
            await guard.authorize(VIEWER, ORG_A, Capability.VIEW)


class TestDatabaseAccessGuard:
    """Tests for DatabaseAccessGuard against a fake pool."""

    @pytest.mark.asyncio
    async def test_member_with_permission(self):
        """Test both lookups return rows."""
        pool = FakePool()
        pool.conn.fetchrow.return_value = {"?column?": 1}
        await DatabaseAccessGuard(pool).authorize(ADMIN, ORG_A, Capability.EDIT)
        membership, permission = pool.conn.fetchrow.await_args_list
        assert membership.args[1:] == (ADMIN, ORG_A)
        assert permission.args[1:] == (ADMIN, ORG_A, "can_edit_credentials", "super_admin")

    @pytest.mark.asyncio
    async def test_not_member(self):
        """Test no membership row means UserNotInOrganization."""
        pool = FakePool()
        pool.conn.fetchrow.return_value = None
        with pytest.raises(UserNotInOrganization):
            await DatabaseAccessGuard(pool).authorize(OUTSIDER, ORG_A, Capability.VIEW)
        assert pool.conn.fetchrow.await_count == 1

    @pytest.mark.asyncio
    async def test_no_permission_row(self):
        """Test membership without a permission row is denied."""
        pool = FakePool()
        pool.conn.fetchrow.side_effect = [{"?column?": 1}, None]
        with pytest.raises(PermissionDenied):
            await DatabaseAccessGuard(pool).authorize(VIEWER, ORG_A, Capability.DELETE)

    @pytest.mark.asyncio
    async def test_pool_failure(self):
        """Test pool errors become StorageError."""
        pool = FakePool(error=OSError("connection refused"))
        with pytest.raises(StorageError):
            await DatabaseAccessGuard(pool).authorize(ADMIN, ORG_A, Capability.VIEW)
