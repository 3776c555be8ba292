"""
Target Harness

Runs fuzz inputs against the program under test and classifies the outcome.
"""

import enum
import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple, Type, Union


class Outcome(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    UNRESOLVED = "UNRESOLVED"


@dataclass
class ExecutionResult:
    """Outcome of running one input against the target."""
    input: str
    outcome: Outcome
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAIL

    def signature(self) -> str:
        """Short description used to group failures."""
        if self.outcome != Outcome.FAIL:
            return self.outcome.value
        last_line = self.stderr.strip().splitlines()[-1] if self.stderr.strip() else ""
        return f"rc={self.returncode}:{last_line[:120]}"


class Harness:
    """Base harness: subclasses implement run_single_testcase()."""

    def __init__(self):
        self.logger = logging.getLogger(f"treefuzz.harness.{self.__class__.__name__}")

    def run_single_testcase(self, data: str) -> ExecutionResult:
        raise NotImplementedError

    def run_batch(self, inputs: Sequence[str]) -> List[ExecutionResult]:
        return [self.run_single_testcase(data) for data in inputs]


class ProgramHarness(Harness):
    """
    Feeds each input to an external program on stdin.

    Return code 0 is PASS, a non-zero code or a signal is FAIL and a
    timeout is UNRESOLVED.
    """

    def __init__(self, command: Union[str, Sequence[str]], timeout: float = 10):
        super().__init__()
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("Empty target command")
        self.timeout = timeout

    def run_single_testcase(self, data: str) -> ExecutionResult:
        start_time = time.time()
        try:
            proc = subprocess.run(
                self.command,
                input=data.encode("utf-8", errors="surrogatepass"),
                capture_output=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            self.logger.debug(f"Target timed out after {self.timeout}s")
            return ExecutionResult(data, Outcome.UNRESOLVED, -1,
                                   _decode(e.stdout), _decode(e.stderr), time.time() - start_time)

        outcome = Outcome.PASS if proc.returncode == 0 else Outcome.FAIL
        if outcome == Outcome.FAIL:
            self.logger.debug(f"Target failed with return code {proc.returncode}")
        return ExecutionResult(data, outcome, proc.returncode, _decode(proc.stdout), _decode(proc.stderr),
                               time.time() - start_time)


class FunctionHarness(Harness):
    """
    Calls a Python function with each input.

    An exception is FAIL, unless it is one of expected_exceptions, which
    marks the input as rejected (UNRESOLVED).
    """

    def __init__(self, function: Callable[[str], object],
                 expected_exceptions: Tuple[Type[BaseException], ...] = ()):
        super().__init__()
        self.function = function
        self.expected_exceptions = tuple(expected_exceptions)

    def run_single_testcase(self, data: str) -> ExecutionResult:
        start_time = time.time()
        try:
            result = self.function(data)
        except self.expected_exceptions as e:
            return ExecutionResult(data, Outcome.UNRESOLVED, 0, "", f"{type(e).__name__}: {e}",
                                   time.time() - start_time)
        except Exception as e:
            self.logger.debug(f"Function raised {type(e).__name__}: {e}")
            return ExecutionResult(data, Outcome.FAIL, 1, "", f"{type(e).__name__}: {e}",
                                   time.time() - start_time)

        return ExecutionResult(data, Outcome.PASS, 0, "" if result is None else str(result), "",
                               time.time() - start_time)


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode(errors="replace")
    return output
