import pytest

from provisioner.saga import CompensationLog


@pytest.mark.asyncio
async def test_actions_run_in_reverse_order_and_failures_continue():
    order = []
    log = CompensationLog()

    async def first():
        order.append("first")

    async def broken():
        order.append("broken")
        raise RuntimeError("cannot undo")

    async def last():
        order.append("last")

    log.add("delete repository", first)
    log.add("remove files", broken)
    log.add("destroy stack", last)
    assert log.descriptions == ["delete repository", "remove files", "destroy stack"]

    failed = await log.run()

    assert order == ["last", "broken", "first"]
    assert failed == ["remove files"]
    assert len(log) == 0


@pytest.mark.asyncio
async def test_cleared_log_runs_nothing():
    calls = []
    log = CompensationLog()

    async def action():
        calls.append(1)

    log.add("noop", action)
    log.clear()
    assert await log.run() == []
    assert calls == []
