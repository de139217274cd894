"""Tests for result envelopes and the deadline race."""

import asyncio

import pytest

from mindsage_platform import CallTimeout, ErrorKind, failure, race_deadline, success
from mindsage_platform import results


def test_success_envelopes():
    assert success() == {"success": True}
    assert success("session_id", "session_1") == {"success": True, "session_id": "session_1"}


def test_failure_envelope():
    assert failure(ErrorKind.REMOTE_REJECTED, "User not found") == {
        "success": False,
        "error": "User not found",
        "kind": "remote_rejected",
    }


@pytest.mark.asyncio
async def test_race_deadline_returns_fast_result():
    async def _fast():
        return "done"

    assert await race_deadline(_fast(), 1.0, operation="Fast") == "done"


@pytest.mark.asyncio
async def test_race_deadline_propagates_errors():
    async def _broken():
        raise ValueError("bad reply")

    with pytest.raises(ValueError, match="bad reply"):
        await race_deadline(_broken(), 1.0, operation="Broken")


@pytest.mark.asyncio
async def test_race_deadline_abandons_slow_call_without_cancelling():
    finished = asyncio.Event()

    async def _slow():
        await asyncio.sleep(0.1)
        finished.set()
        return "late"

    before = len(results._abandoned)

    with pytest.raises(CallTimeout) as exc_info:
        await race_deadline(_slow(), 0.01, operation="Registration")

    assert exc_info.value.operation == "Registration"
    assert len(results._abandoned) == before + 1

    await asyncio.wait_for(finished.wait(), timeout=1.0)
    await asyncio.sleep(0.05)
    assert len(results._abandoned) == before
