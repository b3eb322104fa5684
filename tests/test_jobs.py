"""Tests for the receiving print queue."""

from unittest.mock import AsyncMock, call

import pytest

from niimlabel.errors import TransportWriteError
from niimlabel.jobs import QueuedLabel, build_print_queue, run_print_queue


class TestBuildPrintQueue:
    """Test turning stock deltas into label jobs."""

    def test_positive_deltas_only(self):
        queue = build_print_queue("B001XYZ", {"new": 2, "very-good": 0, "good": -1})

        assert queue == [QueuedLabel("B001XYZ", "CN", 2)]

    def test_condition_order(self):
        queue = build_print_queue("B001XYZ", {"good": 1, "new": 3, "very-good": 2})

        assert [q.condition_label for q in queue] == ["CN", "FB", "B"]
        assert [q.quantity for q in queue] == [3, 2, 1]

    def test_unprintable_conditions_skipped(self):
        """Conditions without a label code never print."""
        queue = build_print_queue("B001XYZ", {"acceptable": 4, "damaged": 1})

        assert queue == []

    def test_empty(self):
        assert build_print_queue("B001XYZ", {}) == []


class TestRunPrintQueue:
    """Test sequential job execution."""

    @pytest.mark.asyncio
    async def test_prints_in_order_with_pause(self, session, mocker):
        session.print_label = AsyncMock()
        sleep = mocker.patch("niimlabel.jobs.asyncio.sleep", new=AsyncMock())
        queue = build_print_queue("B001XYZ", {"new": 2, "good": 1})

        printed = await run_print_queue(session, queue, pause=3.0)

        assert printed == 3
        assert session.print_label.await_args_list == [
            call("B001XYZ", "CN", 2),
            call("B001XYZ", "B", 1),
        ]
        assert sleep.await_args_list == [call(3.0), call(3.0)]

    @pytest.mark.asyncio
    async def test_failure_stops_queue(self, session, mocker):
        session.print_label = AsyncMock(side_effect=[None, TransportWriteError("Printer disconnected"), None])
        mocker.patch("niimlabel.jobs.asyncio.sleep", new=AsyncMock())
        queue = build_print_queue("B001XYZ", {"new": 1, "very-good": 1, "good": 1})

        with pytest.raises(TransportWriteError):
            await run_print_queue(session, queue)

        assert session.print_label.await_count == 2

    @pytest.mark.asyncio
    async def test_real_jobs_reuse_cache(self, session, renderer):
        """Each condition renders once; the printer gets one page per job."""
        queue = build_print_queue("B001XYZ", {"new": 1, "good": 2})

        printed = await run_print_queue(session, queue, pause=0)

        assert printed == 3
        assert renderer.calls == [("B001XYZ", "CN"), ("B001XYZ", "B")]
        assert session.cache.keys() == ["new", "good"]
