"""
Tests for the background forwarder
"""
import asyncio

import pytest

from pixel_tracker.core.config import settings
from pixel_tracker.services.forwarding import BackgroundForwarder


@pytest.mark.asyncio
async def test_scheduled_work_runs_after_return():
    forwarder = BackgroundForwarder(budget=1)
    done = []

    async def work():
        await asyncio.sleep(0.01)
        done.append(True)

    await forwarder.schedule(work())
    assert done == []
    assert forwarder.pending == 1

    await forwarder.wait_idle()
    assert done == [True]
    assert forwarder.pending == 0


@pytest.mark.asyncio
async def test_errors_stay_inside_the_forwarder():
    forwarder = BackgroundForwarder(budget=1)

    async def explode():
        raise RuntimeError("graph api down")

    await forwarder.schedule(explode())
    await forwarder.wait_idle()


@pytest.mark.asyncio
async def test_budget_cuts_off_slow_work():
    forwarder = BackgroundForwarder(budget=0.05)
    finished = []

    async def slow():
        await asyncio.sleep(1)
        finished.append(True)

    await forwarder.schedule(slow())
    await forwarder.wait_idle()

    assert finished == []


@pytest.mark.asyncio
async def test_inline_mode_awaits_work():
    forwarder = BackgroundForwarder(budget=1, inline=True)
    done = []

    async def work():
        done.append(True)

    await forwarder.schedule(work())

    assert done == [True]
    assert forwarder.pending == 0


def test_default_budget_covers_refresh_and_all_send_attempts():
    worst_case = (
        settings.TOKEN_REFRESH_TIMEOUT
        + settings.CAPI_MAX_RETRIES * settings.CAPI_TIMEOUT
        + (settings.CAPI_MAX_RETRIES - 1) * settings.CAPI_RETRY_DELAY
    )

    assert BackgroundForwarder().budget > worst_case
