"""
Tests for the execution bridge and kernel service.

The worker runs in a spawned subprocess, so the fake workers below are
module-level functions the child can import.

Run with: uv run pytest test_kernel.py
"""
import asyncio
import os
import time

import pytest

from document.cell import Cell, RunStatus
from services.kernel import ExecutionBridge, KernelService, KernelStartupError
from services.kernel.execution_bridge import _token_from_wire

READY = {'type': 'status', 'status': 'ready'}


# ----------------------------------------------------------------------------
# Fake workers
# ----------------------------------------------------------------------------

def reversing_worker(input_queue, output_queue):
    """Answers every three requests in reverse order, plus noise."""
    output_queue.put(READY)
    batch = []
    while True:
        msg = input_queue.get()
        if msg.get('type') == 'shutdown':
            break
        batch.append(msg)
        if len(batch) == 3:
            output_queue.put({'id': '999', 'stdout': 'stray', 'stderr': ''})
            output_queue.put({'type': 'status', 'status': 'busy'})
            for m in reversed(batch):
                output_queue.put({'id': m['id'], 'stdout': m['code'], 'stderr': ''})
            output_queue.put({'id': batch[0]['id'], 'stdout': 'duplicate', 'stderr': ''})
            batch = []


def echo_worker(input_queue, output_queue):
    """Echoes code back as stdout. 'die' kills the process, 'hang' gets no reply."""
    output_queue.put(READY)
    while True:
        msg = input_queue.get()
        if msg.get('type') == 'shutdown':
            break
        if msg.get('code') == 'die':
            os._exit(1)
        if msg.get('code') == 'hang':
            continue
        output_queue.put({'id': msg['id'], 'stdout': msg['code'], 'stderr': ''})


def silent_worker(input_queue, output_queue):
    """Never signals ready."""
    time.sleep(30)


def run(coro_fn):
    """Run a test body against a bridge that is always shut down."""
    return asyncio.run(coro_fn())


# ----------------------------------------------------------------------------
# Reply correlation
# ----------------------------------------------------------------------------

def test_token_from_wire():
    assert _token_from_wire("7") == 7
    assert _token_from_wire("007") is None
    assert _token_from_wire(7) is None
    assert _token_from_wire("-1") is None
    assert _token_from_wire("abc") is None
    assert _token_from_wire(None) is None


def test_dispatch_drops_unmatched_replies():
    bridge = ExecutionBridge()
    assert not bridge._dispatch({'type': 'status', 'status': 'ready'})
    assert not bridge._dispatch({'id': '1', 'stdout': 'x'})
    assert not bridge._dispatch("garbage")
    assert bridge.pending_count == 0


def test_busy_status_tracks_running_token():
    bridge = ExecutionBridge()
    assert not bridge._dispatch({'type': 'status', 'status': 'busy', 'id': '5'})
    assert bridge._running == 5
    assert not bridge._dispatch({'id': '5', 'stdout': '', 'stderr': ''})
    assert bridge._running is None


def test_shutdown_resolves_pending_requests():
    async def body():
        bridge = ExecutionBridge(worker_target=echo_worker)
        try:
            await bridge.start()
            hung = asyncio.create_task(bridge.submit("hang", timeout=0))
            await asyncio.sleep(0.2)
            assert bridge.pending_count == 1

            bridge.shutdown()
            result = await asyncio.wait_for(hung, 5)
            assert result.stderr.startswith("KernelShutdown")
            assert bridge.pending_count == 0
        finally:
            bridge.shutdown()

    run(body)


def test_out_of_order_replies_reach_their_callers():
    async def body():
        bridge = ExecutionBridge(worker_target=reversing_worker)
        try:
            results = await asyncio.gather(*(bridge.submit(c) for c in ("a", "b", "c")))
            assert [r.stdout for r in results] == ["a", "b", "c"]
            assert all(r.stderr == "" for r in results)
            assert bridge.pending_count == 0
        finally:
            bridge.shutdown()

    run(body)


def test_concurrent_first_submits_start_one_worker():
    async def body():
        bridge = ExecutionBridge(worker_target=echo_worker)
        try:
            results = await asyncio.gather(*(bridge.submit(f"job {i}") for i in range(6)))
            assert [r.stdout for r in results] == [f"job {i}" for i in range(6)]
            assert bridge.get_status().starts == 1
        finally:
            bridge.shutdown()

    run(body)


# ----------------------------------------------------------------------------
# Worker lifecycle
# ----------------------------------------------------------------------------

def test_dead_worker_fails_pending_and_restarts():
    async def body():
        bridge = ExecutionBridge(worker_target=echo_worker)
        try:
            died = await bridge.submit("die")
            assert died.stdout == ""
            assert died.stderr.startswith("KernelDied")

            again = await bridge.submit("hello")
            assert again.stdout == "hello"
            assert bridge.get_status().starts == 2
        finally:
            bridge.shutdown()

    run(body)


def test_startup_failure_is_reported_as_stderr():
    async def body():
        bridge = ExecutionBridge(startup_timeout=1, worker_target=silent_worker)
        try:
            result = await bridge.submit("print(1)")
            assert result.stdout == ""
            assert result.stderr == "KernelStartupError: Kernel subprocess failed to start"
            assert not bridge.is_alive
            assert bridge.pending_count == 0

            with pytest.raises(KernelStartupError):
                await bridge.start()
        finally:
            bridge.shutdown()

    run(body)


def test_shutdown_without_worker_is_a_no_op():
    bridge = ExecutionBridge()
    bridge.shutdown()
    assert not bridge.interrupt()
    assert bridge.get_status().starts == 0


# ----------------------------------------------------------------------------
# Real kernel
# ----------------------------------------------------------------------------

def kernel_bridge(**kwargs):
    return ExecutionBridge(startup_timeout=60, **kwargs)


def test_captures_stdout():
    async def body():
        bridge = kernel_bridge()
        try:
            result = await bridge.submit("print('hi')")
            assert result.stdout == "hi\n"
            assert result.stderr == ""
        finally:
            bridge.shutdown()

    run(body)


def test_exceptions_become_stderr():
    async def body():
        bridge = kernel_bridge()
        try:
            result = await bridge.submit("print('partial')\nraise ValueError('boom')")
            assert result.stdout == "partial\n"
            assert "ValueError: boom" in result.stderr

            result = await bridge.submit("def f(:\n    pass")
            assert result.stdout == ""
            assert "SyntaxError" in result.stderr
        finally:
            bridge.shutdown()

    run(body)


def test_namespace_persists_between_requests():
    async def body():
        bridge = kernel_bridge()
        try:
            await bridge.submit("x = 41")
            result = await bridge.submit("print(x + 1)")
            assert result.stdout == "42\n"
        finally:
            bridge.shutdown()

    run(body)


def test_overlapping_requests_on_real_kernel():
    async def body():
        bridge = kernel_bridge()
        try:
            results = await asyncio.gather(*(bridge.submit(f"print({i})") for i in range(5)))
            assert [r.stdout for r in results] == [f"{i}\n" for i in range(5)]
            assert bridge.get_status().starts == 1
        finally:
            bridge.shutdown()

    run(body)


def test_timeout_interrupts_and_kernel_recovers():
    async def body():
        bridge = kernel_bridge(request_timeout=1)
        try:
            slow = await bridge.submit("import time\ntime.sleep(30)")
            assert slow.stdout == ""
            assert slow.stderr.startswith("TimeoutError")
            assert bridge.pending_count == 0

            after = await bridge.submit("print('after')", timeout=30)
            assert after.stdout == "after\n"
            assert bridge.get_status().starts == 1
        finally:
            bridge.shutdown()

    run(body)


def test_queued_timeout_does_not_interrupt_running_request():
    async def body():
        bridge = kernel_bridge()
        try:
            await bridge.submit("pass")
            long = asyncio.create_task(
                bridge.submit("import time\ntime.sleep(2)\nprint('long done')", timeout=30))
            await asyncio.sleep(0.5)

            short = await bridge.submit("print('short')", timeout=0.5)
            assert short.stderr.startswith("TimeoutError")

            result = await long
            assert result.stdout == "long done\n"
            assert result.stderr == ""

            # The dropped request still ran; its late reply went nowhere
            after = await bridge.submit("print('after')", timeout=30)
            assert after.stdout == "after\n"
            assert bridge.pending_count == 0
        finally:
            bridge.shutdown()

    run(body)


def test_interrupt_while_idle_keeps_worker():
    async def body():
        bridge = kernel_bridge()
        try:
            await bridge.submit("z = 3")
            assert bridge.interrupt()
            await asyncio.sleep(0.3)

            result = await bridge.submit("print(z)")
            assert result.stdout == "3\n"
            assert bridge.get_status().starts == 1
        finally:
            bridge.shutdown()

    run(body)


def test_shutdown_then_fresh_namespace():
    async def body():
        bridge = kernel_bridge()
        try:
            await bridge.submit("y = 1")
            bridge.shutdown()
            result = await bridge.submit("print('y' in globals())")
            assert result.stdout == "False\n"
            assert bridge.get_status().starts == 2
        finally:
            bridge.shutdown()

    run(body)


# ----------------------------------------------------------------------------
# Kernel service
# ----------------------------------------------------------------------------

def test_run_cell_stores_output():
    async def body():
        service = KernelService(startup_timeout=60)
        try:
            cell = Cell(recognized_code="print(6 * 7)")
            result = await service.run_cell(cell)
            assert result.stdout == "42\n"
            assert cell.stdout == "42\n"
            assert cell.stderr == ""
            assert cell.run_status == RunStatus.DONE

            failing = Cell(recognized_code="1 / 0")
            await service.run_cell(failing)
            assert "ZeroDivisionError" in failing.stderr
            assert failing.run_status == RunStatus.DONE
        finally:
            service.shutdown()

    run(body)


def test_run_cell_without_code_does_nothing():
    async def body():
        service = KernelService()
        cell = Cell()
        assert await service.run_cell(cell) is None
        assert cell.run_status is None
        assert not service.get_status().is_alive

    run(body)
