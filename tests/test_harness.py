"""
Tests for harness.py - target execution and outcome classification.
"""

import sys
import pytest

from harness import ExecutionResult, FunctionHarness, Outcome, ProgramHarness


class TestProgramHarness:
    """Tests for running external programs."""

    def test_pass_and_fail(self):
        script = "import sys; sys.exit(0 if sys.stdin.read() == 'ok' else 3)"
        harness = ProgramHarness([sys.executable, "-c", script], timeout=30)

        passed = harness.run_single_testcase("ok")
        assert passed.outcome == Outcome.PASS
        assert passed.returncode == 0

        failed = harness.run_single_testcase("not ok")
        assert failed.outcome == Outcome.FAIL
        assert failed.returncode == 3
        assert failed.failed

    def test_stderr_in_signature(self):
        script = "import sys; sys.stderr.write('boom\\n'); sys.exit(2)"
        result = ProgramHarness([sys.executable, "-c", script], timeout=30).run_single_testcase("")
        assert result.signature() == "rc=2:boom"

    def test_timeout_is_unresolved(self):
        script = "import time; time.sleep(10)"
        result = ProgramHarness([sys.executable, "-c", script], timeout=0.5).run_single_testcase("")
        assert result.outcome == Outcome.UNRESOLVED
        assert result.returncode == -1

    def test_binary_output_is_decoded(self):
        script = "import sys; sys.stdout.buffer.write(b'\\xff\\xfe'); sys.stdout.flush()"
        result = ProgramHarness([sys.executable, "-c", script], timeout=30).run_single_testcase("x")
        assert result.outcome == Outcome.PASS
        assert result.stdout == "\ufffd\ufffd"

    def test_binary_stderr_on_failure(self):
        script = "import sys; sys.stderr.buffer.write(b'bad \\x80\\n'); sys.exit(4)"
        result = ProgramHarness([sys.executable, "-c", script], timeout=30).run_single_testcase("x")
        assert result.outcome == Outcome.FAIL
        assert result.signature() == "rc=4:bad \ufffd"

    def test_non_ascii_input(self):
        script = "import sys; sys.exit(0 if sys.stdin.buffer.read() == '\\u00e9'.encode('utf-8') else 5)"
        result = ProgramHarness([sys.executable, "-c", script], timeout=30).run_single_testcase("\u00e9")
        assert result.outcome == Outcome.PASS

    def test_command_string_is_split(self):
        harness = ProgramHarness("grep -q needle")
        assert harness.command == ["grep", "-q", "needle"]

    def test_empty_command(self):
        with pytest.raises(ValueError):
            ProgramHarness("")

    def test_run_batch(self):
        script = "import sys; sys.exit(len(sys.stdin.read()) % 2)"
        harness = ProgramHarness([sys.executable, "-c", script], timeout=30)
        outcomes = [r.outcome for r in harness.run_batch(["aa", "a"])]
        assert outcomes == [Outcome.PASS, Outcome.FAIL]


class TestFunctionHarness:
    """Tests for calling Python functions."""

    def test_pass_returns_output(self):
        result = FunctionHarness(lambda s: s.upper()).run_single_testcase("abc")
        assert result.outcome == Outcome.PASS
        assert result.stdout == "ABC"

    def test_exception_is_failure(self):
        def target(data):
            raise ZeroDivisionError("division by zero")

        result = FunctionHarness(target).run_single_testcase("1/0")
        assert result.outcome == Outcome.FAIL
        assert result.signature() == "rc=1:ZeroDivisionError: division by zero"

    def test_expected_exception_is_unresolved(self):
        result = FunctionHarness(int, expected_exceptions=(ValueError,)).run_single_testcase("x")
        assert result.outcome == Outcome.UNRESOLVED
        assert not result.failed
        assert result.signature() == "UNRESOLVED"


class TestExecutionResult:
    """Tests for ExecutionResult."""

    def test_signature_without_stderr(self):
        result = ExecutionResult("data", Outcome.FAIL, returncode=-11)
        assert result.signature() == "rc=-11:"

    def test_pass_signature(self):
        assert ExecutionResult("data", Outcome.PASS).signature() == "PASS"
