"""
Tests for command correlation.
"""

import asyncio

import pytest

from command_correlator import CommandCorrelator, CommandIdCollision, parse_command_id


class TestCommandCorrelator:
    """Command ids, pending futures and their resolution."""

    @pytest.mark.asyncio
    async def test_ids_start_at_one_and_increase(self):
        correlator = CommandCorrelator()

        ids = [correlator.allocate()[0] for _ in range(3)]

        assert ids == [1, 2, 3]
        assert correlator.pending_count == 3

    @pytest.mark.asyncio
    async def test_out_of_order_responses_match_by_id(self):
        correlator = CommandCorrelator()
        futures = {command_id: future for command_id, future in (correlator.allocate() for _ in range(3))}

        for command_id in (3, 1, 2):
            assert correlator.resolve(command_id, {"commandId": command_id, "data": f"payload-{command_id}"})

        results = await asyncio.gather(*futures.values())
        assert [result["data"] for result in results] == ["payload-1", "payload-2", "payload-3"]
        assert correlator.pending_count == 0

    @pytest.mark.asyncio
    async def test_response_is_dispatched_once(self):
        correlator = CommandCorrelator()
        command_id, future = correlator.allocate()

        assert correlator.resolve(command_id, {"n": 1}) is True
        assert correlator.resolve(command_id, {"n": 2}) is False
        assert (await future) == {"n": 1}

    @pytest.mark.asyncio
    async def test_unknown_response_is_ignored(self):
        correlator = CommandCorrelator()

        assert correlator.resolve(42, {}) is False

    @pytest.mark.asyncio
    async def test_reject_settles_only_that_command(self):
        correlator = CommandCorrelator()
        first_id, first = correlator.allocate()
        second_id, second = correlator.allocate()

        correlator.reject(first_id, RuntimeError("write failed"))

        with pytest.raises(RuntimeError):
            await first
        assert not second.done()
        assert correlator.is_pending(second_id)

    @pytest.mark.asyncio
    async def test_abandon_all_leaves_futures_unsettled(self):
        correlator = CommandCorrelator()
        _, future = correlator.allocate()

        assert correlator.abandon_all() == 1
        assert correlator.pending_count == 0
        assert not future.done()

    @pytest.mark.asyncio
    async def test_collision_is_refused(self):
        correlator = CommandCorrelator()
        correlator.allocate()
        correlator._next_id = 1

        with pytest.raises(CommandIdCollision):
            correlator.allocate()
        assert correlator.pending_count == 1


class TestParseCommandId:
    """Command ids arriving off the wire."""

    def test_accepts_ints_and_digit_strings(self):
        assert parse_command_id(7) == 7
        assert parse_command_id("7") == 7

    def test_rejects_everything_else(self):
        assert parse_command_id(None) is None
        assert parse_command_id(True) is None
        assert parse_command_id("seven") is None
