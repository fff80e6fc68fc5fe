"""
Execution bridge to the kernel subprocess.

This module owns one worker process, started on first use, and matches
its asynchronous replies to the callers waiting on them. Each request
gets a fresh integer token; a reply resolves the request whose token it
echoes and nothing else.
"""
import os
import signal
import asyncio
import itertools
import logging
import multiprocessing
from queue import Empty
from typing import Callable, Dict, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

# Fresh interpreter for the worker; the parent's event loop and threads are not inherited
_mp = multiprocessing.get_context('spawn')

POLL_INTERVAL = 0.05


class KernelStartupError(RuntimeError):
    """The worker process did not come up."""


class RequestState(str, Enum):
    CREATED = "created"
    DISPATCHED = "dispatched"
    RESOLVED = "resolved"


@dataclass
class ExecutionResult:
    """Captured output of one request."""
    stdout: str = ""
    stderr: str = ""

    def to_dict(self) -> dict:
        return {'stdout': self.stdout, 'stderr': self.stderr}


@dataclass
class PendingRequest:
    token: int
    future: asyncio.Future
    state: RequestState = RequestState.CREATED
    # Which worker process the request was sent to (1 = first start)
    generation: int = 0


@dataclass
class KernelStatus:
    """Current status of the kernel."""
    is_alive: bool
    pending: int
    starts: int
    pid: Optional[int] = None


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


def _token_from_wire(raw_id) -> Optional[int]:
    """Token for a reply id, None unless it is exactly what submit() sent."""
    if not isinstance(raw_id, str) or not raw_id.isdigit():
        return None
    token = int(raw_id)
    return token if str(token) == raw_id else None


class ExecutionBridge:
    """
    Request/response channel to an isolated Python worker.

    Key features:
    - Worker started lazily and at most once at a time, even when the
      first submits race
    - Overlapping submits are safe; replies are correlated by token
    - submit() never raises for transport problems: startup failure,
      a dead worker or a timeout come back as stderr text
    - A request that outlives its timeout is dropped and the worker is
      interrupted; a late reply for it is ignored
    """

    def __init__(self, startup_timeout: float = 10.0, request_timeout: Optional[float] = 30.0,
                 worker_target: Optional[Callable] = None):
        self.startup_timeout = startup_timeout
        self.request_timeout = request_timeout
        self._worker_target = worker_target

        self.process = None
        self.input_queue = None
        self.output_queue = None

        self._pending: Dict[int, PendingRequest] = {}
        self._tokens = itertools.count(1)
        self._start_lock = asyncio.Lock()
        self._reader: Optional[asyncio.Task] = None
        self._starts = 0
        # Token the worker last reported as executing
        self._running: Optional[int] = None

    @property
    def is_alive(self) -> bool:
        """Check if the worker subprocess is running."""
        return self.process is not None and self.process.is_alive()

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get_status(self) -> KernelStatus:
        return KernelStatus(
            is_alive=self.is_alive,
            pending=len(self._pending),
            starts=self._starts,
            pid=self.pid,
        )

    def _start_process(self):
        """Start the worker and wait for its ready signal. Blocking."""
        # Import here so the parent only needs IPython once a kernel is used
        from .kernel_worker import kernel_worker_main

        target = self._worker_target or kernel_worker_main
        input_queue = _mp.Queue()
        output_queue = _mp.Queue()

        process = _mp.Process(
            target=target,
            args=(input_queue, output_queue),
            daemon=True  # Die with parent process
        )
        process.start()

        try:
            msg = output_queue.get(timeout=self.startup_timeout)
        except Empty:
            msg = None

        if not (isinstance(msg, dict) and msg.get('type') == 'status' and msg.get('status') == 'ready'):
            process.kill()
            process.join(timeout=1)
            raise KernelStartupError("Kernel subprocess failed to start")

        self.process = process
        self.input_queue = input_queue
        self.output_queue = output_queue
        self._starts += 1
        self._running = None

    async def start(self):
        """Start the worker if it is not running. Concurrent callers share one start."""
        async with self._start_lock:
            if self.is_alive:
                return
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._start_process)
            self._reader = asyncio.create_task(
                self._read_replies(self.process, self.output_queue, self._starts))
            logger.info(f"Kernel subprocess started (pid {self.pid})")

    async def submit(self, code: str, timeout: Optional[float] = None) -> ExecutionResult:
        """
        Run code in the worker and wait for its output.

        Args:
            code: Python source to execute
            timeout: seconds to wait; defaults to request_timeout, None or
                     a non-positive value waits indefinitely

        Returns:
            ExecutionResult with the captured stdout/stderr text
        """
        token = next(self._tokens)
        loop = asyncio.get_running_loop()
        request = PendingRequest(token=token, future=loop.create_future())
        self._pending[token] = request

        try:
            await self.start()
            self.input_queue.put({'id': str(token), 'code': code})
            request.generation = self._starts
            request.state = RequestState.DISPATCHED
        except Exception as e:
            self._pending.pop(token, None)
            request.state = RequestState.RESOLVED
            logger.error(f"Could not dispatch request {token}: {e}")
            return ExecutionResult(stdout="", stderr=_describe(e))

        if timeout is None:
            timeout = self.request_timeout
        if timeout is not None and timeout <= 0:
            timeout = None

        try:
            return await asyncio.wait_for(request.future, timeout)
        except asyncio.TimeoutError:
            if self._running == token:
                logger.warning(f"Request {token} timed out after {timeout}s, interrupting kernel")
                self.interrupt()
            else:
                # Still queued behind other work; the worker runs it later and the reply is dropped
                logger.warning(f"Request {token} timed out after {timeout}s before it started")
            return ExecutionResult(
                stdout="",
                stderr=f"TimeoutError: execution did not finish within {timeout}s",
            )
        finally:
            self._pending.pop(token, None)
            request.state = RequestState.RESOLVED

    def _dispatch(self, msg) -> bool:
        """
        Resolve the request a reply belongs to.

        Returns False when the reply was dropped: status messages,
        malformed ids, unknown tokens and repeats of resolved ones.
        A 'busy' status records which token the worker is executing.
        """
        if not isinstance(msg, dict) or 'id' not in msg:
            return False

        token = _token_from_wire(msg.get('id'))

        if msg.get('type') == 'status':
            if msg.get('status') == 'busy':
                self._running = token
            return False

        if token is not None and token == self._running:
            self._running = None

        request = self._pending.pop(token, None) if token is not None else None
        if request is None or request.future.done():
            logger.debug(f"Dropping reply for unknown request {msg.get('id')!r}")
            return False

        request.state = RequestState.RESOLVED
        request.future.set_result(ExecutionResult(
            stdout=str(msg.get('stdout') or ''),
            stderr=str(msg.get('stderr') or ''),
        ))
        return True

    def _fail_pending(self, reason: str, generation: Optional[int] = None):
        """
        Resolve outstanding requests with `reason` as their error text.

        With `generation`, only requests sent to that worker are failed.
        """
        doomed = [t for t, r in self._pending.items()
                  if generation is None or r.generation == generation]
        for token in doomed:
            request = self._pending.pop(token)
            request.state = RequestState.RESOLVED
            if not request.future.done():
                request.future.set_result(ExecutionResult(stdout="", stderr=reason))

    async def _read_replies(self, process, output_queue, generation: int):
        """Drain the worker's output queue until the worker goes away."""
        loop = asyncio.get_running_loop()

        while True:
            try:
                msg = await loop.run_in_executor(
                    None,
                    lambda: output_queue.get(timeout=POLL_INTERVAL)
                )
            except Empty:
                if not process.is_alive():
                    if process is self.process:
                        logger.error("Kernel subprocess died unexpectedly")
                    self._fail_pending("KernelDied: the kernel subprocess terminated unexpectedly", generation)
                    break
                continue
            except (EOFError, OSError, ValueError) as e:
                # Queue closed underneath us
                self._fail_pending(f"KernelDied: {e}", generation)
                break

            self._dispatch(msg)

    def interrupt(self) -> bool:
        """
        Send SIGINT to the worker - hard interrupt.

        Returns:
            True if interrupt signal was sent, False if no kernel running
        """
        if self.process and self.process.is_alive():
            try:
                os.kill(self.process.pid, signal.SIGINT)
                return True
            except (ProcessLookupError, PermissionError):
                return False
        return False

    def shutdown(self):
        """Stop the worker. Outstanding requests resolve with an error."""
        if self.process is None:
            return

        process = self.process

        # Try graceful shutdown first
        if self.input_queue:
            try:
                self.input_queue.put({'type': 'shutdown'})
                process.join(timeout=2)
            except Exception:
                pass

        # Force terminate if still alive
        if process.is_alive():
            process.terminate()
            process.join(timeout=1)

        # Last resort: kill
        if process.is_alive():
            process.kill()

        self.process = None
        self.input_queue = None
        self.output_queue = None
        self._running = None

        try:
            self._fail_pending("KernelShutdown: the kernel was shut down")
            if self._reader is not None and not self._reader.done():
                self._reader.cancel()
        except RuntimeError:
            # Event loop already closed
            pass
        self._reader = None

    def __del__(self):
        """Cleanup on garbage collection."""
        self.shutdown()
