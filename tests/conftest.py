"""
Shared fixtures: the real FastAPI app wired to an in-memory Mongo
(mongomock-motor), a channel registry with a mocked Socket.IO server, and a
mocked mailer.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from supportdesk.auth import create_access_token
from supportdesk.db import ensure_indexes
from supportdesk.dependencies import get_db, get_notifier
from supportdesk.main import app
from supportdesk.models import ADMIN, DEVELOPER, USER
from supportdesk.realtime import ChannelRegistry
from supportdesk.services import accounts, licenses, tickets
from supportdesk.services.notifications import Notifier


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def mock_db():
    database = AsyncMongoMockClient()["helpdesk_test"]
    run(ensure_indexes(database))
    return database


@pytest.fixture
def socket_server():
    server = MagicMock()
    server.emit = AsyncMock()
    server.enter_room = AsyncMock()
    server.leave_room = AsyncMock()
    return server


@pytest.fixture
def channels(socket_server):
    return ChannelRegistry(socket_server)


@pytest.fixture
def mailer():
    mock = MagicMock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def notifier(mock_db, channels, mailer):
    return Notifier(mock_db, channels, mailer)


@pytest.fixture
def client(mock_db, notifier):
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# ACCOUNTS
# =============================================================================

@pytest.fixture
def admin(mock_db):
    return run(accounts.create_user(mock_db, "Super Admin", "admin@example.com", "admin123", ADMIN))


@pytest.fixture
def developer(mock_db):
    return run(accounts.create_user(mock_db, "Usman", "usman@example.com", "usman123", DEVELOPER))


@pytest.fixture
def other_developer(mock_db):
    return run(accounts.create_user(mock_db, "Ahmed", "ahmed@example.com", "ahmed123", DEVELOPER))


@pytest.fixture
def end_user(mock_db):
    return run(accounts.create_user(mock_db, "Ali", "ali@example.com", "ali12345", USER))


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user['_id'])}"}


# =============================================================================
# DATA
# =============================================================================

TICKET_DATA = {
    "userName": "A",
    "userEmail": "a@x.com",
    "product": "RxScan",
    "subject": "s",
    "description": "d",
}


@pytest.fixture
def make_ticket(mock_db):
    def factory(**overrides):
        return run(tickets.create_ticket(mock_db, {**TICKET_DATA, **overrides}))
    return factory


@pytest.fixture
def license_code(mock_db, admin):
    return run(licenses.generate(mock_db, count=1, created_by=admin["_id"]))[0]["code"]
