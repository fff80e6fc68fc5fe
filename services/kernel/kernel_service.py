"""
Kernel service - runs notebook cells through the execution bridge.

The service is the single owner of the bridge: the worker process is
created on the first run and lives until shutdown() or restart().
"""
import logging
from typing import Optional

from document.cell import Cell, RunStatus
from .execution_bridge import ExecutionBridge, ExecutionResult, KernelStatus

logger = logging.getLogger(__name__)


class KernelService:
    """
    Runs recognized code for cells.

    Args:
        bridge: bridge to use; by default one is created with the given
                timeouts. The worker itself starts lazily on first use.
    """

    def __init__(self, bridge: Optional[ExecutionBridge] = None,
                 startup_timeout: float = 10.0, request_timeout: Optional[float] = 30.0):
        self.bridge = bridge or ExecutionBridge(
            startup_timeout=startup_timeout,
            request_timeout=request_timeout,
        )

    async def run_code(self, code: str, timeout: Optional[float] = None) -> ExecutionResult:
        return await self.bridge.submit(code, timeout=timeout)

    async def run_cell(self, cell: Cell) -> Optional[ExecutionResult]:
        """
        Execute a cell's recognized code and store its output on the cell.

        Returns None without touching the cell when there is no code.
        Output is stored even when the code failed; the error text is in
        stderr and the run status is DONE.
        """
        if not cell.recognized_code:
            return None

        cell.run_status = RunStatus.RUNNING

        try:
            result = await self.bridge.submit(cell.recognized_code)
        except Exception as e:
            # Unexpected error in the bridge itself
            logger.exception(f"Running cell {cell.id} failed: {e}")
            result = ExecutionResult(stdout="", stderr=f"{type(e).__name__}: {e}")

        cell.stdout = result.stdout
        cell.stderr = result.stderr
        cell.run_status = RunStatus.DONE
        return result

    def get_status(self) -> KernelStatus:
        return self.bridge.get_status()

    def interrupt(self) -> bool:
        """
        Interrupt the running code.

        Sends SIGINT to the worker, which turns into KeyboardInterrupt
        text on the running request.
        """
        return self.bridge.interrupt()

    def restart(self):
        """
        Drop the worker and its namespace.

        The next run starts a fresh worker.
        """
        self.bridge.shutdown()

    def shutdown(self):
        self.bridge.shutdown()
