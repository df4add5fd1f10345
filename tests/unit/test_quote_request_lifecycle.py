"""
Unit tests for the pure parts of quoteflow/services/quote_request_service.py

Tests: effective_status, is_accepting_responses, ensure_owner, and the
transition table, plus the row lock taken for response intake.
"""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from quoteflow.errors import Forbidden
from quoteflow.services.quote_request_service import (
    ALLOWED_TRANSITIONS,
    effective_status,
    ensure_owner,
    get_quote_request,
    is_accepting_responses,
    status_of,
)

DEADLINE = datetime(2025, 1, 10, 0, 0)


def _quote_request(status="sent", deadline=DEADLINE, user_id=None):
    qr = MagicMock()
    qr.id = uuid.uuid4()
    qr.status = status
    qr.deadline = deadline
    qr.user_id = user_id or uuid.uuid4()
    return qr


@pytest.mark.parametrize(
    "persisted,now,expected",
    [
        ("sent", DEADLINE - timedelta(days=5), "sent"),
        ("sent", DEADLINE, "sent"),
        ("sent", DEADLINE + timedelta(seconds=1), "expired"),
        ("draft", DEADLINE + timedelta(days=1), "draft"),
        ("completed", DEADLINE + timedelta(days=1), "completed"),
        ("expired", DEADLINE - timedelta(days=1), "expired"),
    ],
)
def test_effective_status(persisted, now, expected):
    assert effective_status(persisted, DEADLINE, now) == expected


def test_status_of_uses_deadline():
    qr = _quote_request()
    assert status_of(qr, DEADLINE + timedelta(hours=1)) == "expired"
    assert qr.status == "sent"


def test_accepting_responses_only_while_sent_and_open():
    assert is_accepting_responses(_quote_request(), DEADLINE - timedelta(days=5))
    assert is_accepting_responses(_quote_request(), DEADLINE)
    assert not is_accepting_responses(_quote_request(), DEADLINE + timedelta(seconds=1))
    assert not is_accepting_responses(_quote_request(status="draft"), DEADLINE - timedelta(days=5))
    assert not is_accepting_responses(_quote_request(status="completed"), DEADLINE - timedelta(days=5))


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS["expired"] == frozenset()
    assert ALLOWED_TRANSITIONS["completed"] == frozenset()
    assert ALLOWED_TRANSITIONS["draft"] == frozenset({"sent"})
    assert ALLOWED_TRANSITIONS["sent"] == frozenset({"completed", "expired"})


def test_ensure_owner():
    owner = uuid.uuid4()
    qr = _quote_request(user_id=owner)
    ensure_owner(qr, str(owner))
    with pytest.raises(Forbidden):
        ensure_owner(qr, str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_intake_lookup_locks_the_request_row():
    qr = _quote_request()
    result = MagicMock()
    result.scalar_one_or_none.return_value = qr
    session = MagicMock()
    session.execute = AsyncMock(return_value=result)

    assert await get_quote_request(session, qr.id, for_update=True) is qr
    stmt = session.execute.call_args.args[0]
    assert "FOR UPDATE" in str(stmt.compile(dialect=postgresql.dialect()))

    await get_quote_request(session, qr.id)
    stmt = session.execute.call_args.args[0]
    assert "FOR UPDATE" not in str(stmt.compile(dialect=postgresql.dialect()))
