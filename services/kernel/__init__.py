"""Kernel services - Isolated code execution with request correlation."""
from .execution_bridge import ExecutionBridge, ExecutionResult, KernelStatus, KernelStartupError
from .kernel_service import KernelService

__all__ = ['ExecutionBridge', 'ExecutionResult', 'KernelStatus', 'KernelStartupError', 'KernelService']
