"""Shared fixtures for the credential vault tests."""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest

from navigator_credentials.vault import (
    Capability,
    CipherEngine,
    CredentialStore,
    MasterKey,
    MemoryCredentialRepository,
    StaticAccessGuard,
)

TEST_KEY_HEX = "00112233445566778899aabbccddeeff" * 2
OTHER_KEY_HEX = "ffeeddccbbaa99887766554433221100" * 2

ORG_A = "org-alpha-001"
ORG_B = "org-beta-002"
ADMIN = "user-admin"
VIEWER = "user-viewer"
OUTSIDER = "user-outsider"
ADMIN_B = "user-admin-b"


class FakeConnection:
    """asyncpg-like connection with mocked query methods."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")


class FakePool:
    """asyncpg-like pool handing out a single FakeConnection."""

    def __init__(self, conn=None, error: Exception = None):
        self.conn = conn or FakeConnection()
        self.error = error

    @asynccontextmanager
    async def acquire(self):
        if self.error is not None:
            raise self.error
        yield self.conn


@pytest.fixture
def master_key():
    return MasterKey.from_hex(TEST_KEY_HEX)


@pytest.fixture
def engine(master_key):
    return CipherEngine(master_key)


@pytest.fixture
def other_engine():
    return CipherEngine(MasterKey.from_hex(OTHER_KEY_HEX))


@pytest.fixture
def guard():
    guard = StaticAccessGuard()
    guard.add_member(ADMIN, ORG_A, list(Capability))
    guard.add_member(VIEWER, ORG_A, [Capability.VIEW])
    guard.add_member(ADMIN_B, ORG_B, ["super_admin"])
    return guard


@pytest.fixture
def repository():
    return MemoryCredentialRepository()


@pytest.fixture
def store(engine, guard, repository):
    return CredentialStore(engine, guard, repository)
