"""Tests for the completion race and SIGTERM/SIGKILL escalation."""

import asyncio
import signal
import sys
import time

import pytest

from claude_task.runner.deadline import DeadlineController, OutcomeCell, normalize_exit_code
from claude_task.runner.outcome import Termination, TerminationReason

IGNORES_SIGTERM = (
    "import signal, sys, time\n"
    "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
    "print('ready', flush=True)\n"
    "time.sleep(30)\n"
)


async def _python(code: str) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        sys.executable, "-c", code, stdout=asyncio.subprocess.PIPE
    )


@pytest.mark.parametrize(
    "returncode, expected",
    [(0, 0), (3, 3), (-signal.SIGKILL, 137), (-signal.SIGTERM, 143), (None, 1)],
)
def test_normalize_exit_code(returncode, expected):
    assert normalize_exit_code(returncode) == expected


@pytest.mark.asyncio
async def test_outcome_cell_first_write_wins():
    cell = OutcomeCell()
    first = Termination(TerminationReason.TIMED_OUT, 124)

    assert cell.resolve(first) is True
    assert cell.resolve(Termination(TerminationReason.EXITED, 0)) is False
    assert cell.resolved
    assert await cell.wait() == first


@pytest.mark.asyncio
async def test_exit_before_deadline_reports_exit_code():
    process = await _python("import sys; sys.exit(7)")
    controller = DeadlineController(process, timeout_seconds=10)

    termination = await controller.race()
    await controller.close()

    assert termination == Termination(TerminationReason.EXITED, 7)
    assert controller.signals_sent == []
    assert not controller.timed_out


@pytest.mark.asyncio
async def test_normal_exit_waits_for_drain():
    process = await _python("pass")
    drained = asyncio.get_running_loop().create_future()
    controller = DeadlineController(process, timeout_seconds=10)

    race = asyncio.create_task(controller.race(drained=drained))
    await asyncio.wait_for(process.wait(), timeout=5)
    await asyncio.sleep(0.05)
    assert not race.done()

    drained.set_result(None)
    termination = await race
    await controller.close()

    assert termination.reason is TerminationReason.EXITED


@pytest.mark.asyncio
async def test_deadline_sends_sigterm_and_resolves_124():
    process = await _python("import time; time.sleep(30)")
    controller = DeadlineController(process, timeout_seconds=0.2, grace_period=0.5)

    started = time.monotonic()
    termination = await controller.race()
    elapsed = time.monotonic() - started
    await controller.close()

    assert termination == Termination(TerminationReason.TIMED_OUT, 124)
    assert elapsed < 2
    assert controller.signals_sent == [signal.SIGTERM]
    assert controller.timed_out
    assert process.returncode == -signal.SIGTERM


@pytest.mark.asyncio
async def test_sigkill_follows_when_sigterm_is_ignored():
    process = await _python(IGNORES_SIGTERM)
    await asyncio.wait_for(process.stdout.readline(), timeout=5)
    controller = DeadlineController(process, timeout_seconds=0.2, grace_period=0.5)

    termination = await controller.race()
    assert controller.signals_sent == [signal.SIGTERM]
    await controller.close()

    assert termination.exit_code == 124
    assert controller.signals_sent == [signal.SIGTERM, signal.SIGKILL]
    assert process.returncode == -signal.SIGKILL


@pytest.mark.asyncio
async def test_no_sigkill_when_sigterm_is_honoured():
    process = await _python("import time; time.sleep(30)")
    controller = DeadlineController(process, timeout_seconds=0.1, grace_period=0.3)

    await controller.race()
    await controller.close()
    await asyncio.sleep(0.4)

    assert signal.SIGKILL not in controller.signals_sent


@pytest.mark.asyncio
async def test_fail_resolves_errored():
    process = await _python("import time; time.sleep(30)")
    controller = DeadlineController(process, timeout_seconds=10)
    try:
        race = asyncio.create_task(controller.race())
        await asyncio.sleep(0)
        assert controller.fail(RuntimeError("stdout broke")) is True

        termination = await race
        assert termination == Termination(TerminationReason.ERRORED, 1)
    finally:
        process.kill()
        await process.wait()
        await controller.close()
