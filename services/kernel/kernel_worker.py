"""
Kernel worker that runs in a subprocess.

Each request runs in execnb's CaptureShell with stdout/stderr swapped
for in-memory buffers. Whatever the code does, the worker answers with
exactly one {id, stdout, stderr} message carrying the request's id.
"""
import io
import sys
import traceback
from multiprocessing import Queue
from typing import Tuple

from execnb.shell import CaptureShell
from fastcore.basics import patch


@patch
def _showtraceback(self: CaptureShell, etype, evalue, stb):
    """Tracebacks are formatted from the run result, not printed."""
    pass


def _format_exception(exc: BaseException) -> str:
    return ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))


@patch
def run_captured(self: CaptureShell, code: str) -> Tuple[str, str]:
    """
    Run code and return what it wrote to (stdout, stderr).

    Exceptions raised by the code, syntax errors included, are appended
    to the stderr text instead of propagating. Runs silently, so the
    value of a trailing expression is not echoed.
    """
    out, err = io.StringIO(), io.StringIO()
    old_stdout, old_stderr = sys.stdout, sys.stderr

    try:
        sys.stdout, sys.stderr = out, err

        # InteractiveShell's run_cell, bypassing CaptureShell's own capture
        result = super(CaptureShell, self).run_cell(code, store_history=False, silent=True)

        exc = result.error_before_exec or result.error_in_exec
        if exc is not None:
            err.write(_format_exception(exc))

    finally:
        sys.stdout, sys.stderr = old_stdout, old_stderr

    return out.getvalue(), err.getvalue()


def kernel_worker_main(input_queue: Queue, output_queue: Queue):
    """
    Main loop for the kernel subprocess.

    Waits for {id, code} requests on input_queue and answers each on
    output_queue. The namespace persists between requests. SIGINT
    interrupts the running code and is reported as that request's error.
    """
    import signal

    shell = CaptureShell()

    # SIGINT only interrupts user code; while the worker talks to the
    # queues it is ignored
    executing = {'active': False}

    def sigint_handler(signum, frame):
        if executing['active']:
            raise KeyboardInterrupt("Execution interrupted by user")

    signal.signal(signal.SIGINT, sigint_handler)

    # Signal ready
    output_queue.put({'type': 'status', 'status': 'ready'})

    while True:
        msg = input_queue.get()

        if msg.get('type') == 'shutdown':
            output_queue.put({'type': 'status', 'status': 'shutdown'})
            break

        request_id = msg.get('id')
        output_queue.put({'type': 'status', 'status': 'busy', 'id': request_id})

        try:
            executing['active'] = True
            stdout, stderr = shell.run_captured(msg.get('code', ''))
        except KeyboardInterrupt:
            # The interrupt can land before run_captured restores the streams
            sys.stdout, sys.stderr = sys.__stdout__, sys.__stderr__
            stdout, stderr = '', 'KeyboardInterrupt: Execution interrupted by user\n'
        except Exception as e:
            # Failure in the worker itself rather than in the user's code
            stdout, stderr = '', _format_exception(e)
        finally:
            executing['active'] = False

        output_queue.put({'id': request_id, 'stdout': stdout, 'stderr': stderr})


if __name__ == '__main__':
    # For testing - can be run directly
    input_q = Queue()
    output_q = Queue()
    kernel_worker_main(input_q, output_q)
