"""
Jupyter kernel interpreter.

This wraps the jupyter_client library to provide the interpreter interface
the session consumes:
    interpreter = await KernelInterpreter.create(timeout=10)
    outcome = await interpreter.execute("x = 21\\nprint(x * 2)")
    outcome.output  # "42\\n"
    await interpreter.shutdown()

Every call starts from an empty namespace. Multi-cell stages get their
variable persistence from the accumulator's composite source, not from
kernel state, so a failed cell can never leave half-defined names behind.

Key concepts:
    1. AsyncKernelManager - starts a Python process (the "kernel")
    2. Kernel client - sends code to that process, receives outputs
    3. Messages - the kernel sends back different message types:
       - "stream": stdout/stderr output (from print())
       - "execute_result": the repr of the last expression (like REPL)
       - "error": exception info if code crashed
"""

import atexit
import logging
import time
from queue import Empty
from typing import Protocol, runtime_checkable

from jupyter_client.manager import AsyncKernelManager

from codepedagogy.core.config import ExecutionConfig, config
from codepedagogy.core.errors import InterpreterError
from codepedagogy.core.types import ExecutionOutcome

logger = logging.getLogger(__name__)

RESET_NAMESPACE = "%reset -f"


@runtime_checkable
class Interpreter(Protocol):
    """
    The interpreter collaborator.

    `execute` returns an ExecutionOutcome and must not raise for erroring
    user programs. It may be a coroutine function or a plain function.
    """

    def execute(self, source: str): ...


class KernelInterpreter:
    """
    A Python interpreter backed by a Jupyter kernel.

    Usage:
        interpreter = await KernelInterpreter.create()
        outcome = await interpreter.execute("print('hello')")
        await interpreter.shutdown()
    """

    def __init__(self, timeout: float, kernel_name: str = "python3"):
        self.timeout = timeout
        self.kernel_name = kernel_name
        self.km = None
        self.kc = None
        self._shutdown = False

    @classmethod
    async def create(
        cls,
        timeout: float | None = None,
        workdir: str | None = None,
        execution_config: ExecutionConfig | None = None,
    ) -> "KernelInterpreter":
        cfg = execution_config or config.execution
        interpreter = cls(timeout or cfg.timeout, cfg.kernel_name)

        try:
            interpreter.km = AsyncKernelManager(kernel_name=cfg.kernel_name)
            if workdir:
                await interpreter.km.start_kernel(cwd=workdir)
            else:
                await interpreter.km.start_kernel()
            interpreter.kc = interpreter.km.client()
            interpreter.kc.start_channels()
            await interpreter.kc.wait_for_ready(timeout=cfg.startup_timeout)
        except Exception as e:
            raise InterpreterError(f"Failed to start kernel {cfg.kernel_name!r}: {e}") from e

        atexit.register(interpreter._stop_channels)
        logger.debug(f"Kernel {cfg.kernel_name} ready")
        return interpreter

    async def execute(self, source: str) -> ExecutionOutcome:
        """
        Run `source` in a fresh namespace.

        Returns:
            ExecutionOutcome(output=stdout) on success, otherwise
            ExecutionOutcome(error="<ErrorType>: <message>"). Timeouts are
            reported as errors, not raised.
        """
        if self.kc is None:
            raise InterpreterError("Kernel is not running")

        start = time.perf_counter()
        await self._run(RESET_NAMESPACE)

        msg_id = self.kc.execute(source)
        outputs = await self._collect_outputs(msg_id)
        elapsed = int((time.perf_counter() - start) * 1000)

        if outputs is None:
            logger.info(f"Execution timed out after {self.timeout}s")
            await self._interrupt()
            return ExecutionOutcome.failure(f"TimeoutError: Execution timed out after {self.timeout}s")

        logger.debug(f"Executed {len(source)} chars in {elapsed}ms")
        if outputs["error_type"] is not None:
            return ExecutionOutcome.failure(f"{outputs['error_type']}: {outputs['error_message']}")
        return ExecutionOutcome.success("".join(outputs["stdout"]))

    async def _run(self, code: str) -> None:
        msg_id = self.kc.execute(code, silent=True)
        await self._collect_outputs(msg_id)

    async def _collect_outputs(self, msg_id: str) -> dict | None:
        """
        Read messages from kernel until execution completes.
        Returns None once `timeout` has elapsed for the whole run, otherwise
        dict of collected outputs.
        """
        outputs = {
            "stdout": [],
            "stderr": [],
            "error_type": None,
            "error_message": None,
        }

        # One budget for the whole run; a chatty loop must not reset it
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                msg = await self.kc.get_iopub_msg(timeout=remaining)
            except Empty:
                return None

            if msg["parent_header"].get("msg_id") != msg_id:
                continue

            msg_type = msg["header"]["msg_type"]
            content = msg["content"]

            if msg_type == "stream":
                outputs[content["name"]].append(content["text"])
            elif msg_type == "error":
                outputs["error_type"] = content["ename"]
                outputs["error_message"] = content["evalue"]
            elif msg_type == "status" and content["execution_state"] == "idle":
                break

        return outputs

    async def _interrupt(self) -> None:
        if self.km is not None:
            await self.km.interrupt_kernel()

    def _stop_channels(self) -> None:
        if self.kc is not None:
            self.kc.stop_channels()

    async def shutdown(self) -> None:
        """Stop the kernel process."""
        if self._shutdown:
            return
        self._shutdown = True
        atexit.unregister(self._stop_channels)

        if self.kc is not None:
            self.kc.stop_channels()
            self.kc = None
        if self.km is not None:
            await self.km.shutdown_kernel(now=True)
            self.km = None

    async def __aenter__(self) -> "KernelInterpreter":
        return self

    async def __aexit__(self, *args) -> None:
        await self.shutdown()
