"""In-memory fake implementations for testing.

This module provides fake implementations of revwalk protocols for use in
unit tests. Fakes are preferred over mocks because they:

1. Implement real protocol contracts, catching interface mismatches at test time
2. Provide deterministic, predictable behavior without call-order dependencies
3. Enable behavior-based testing (assert outputs/state) over interaction testing

Available fakes:
- FakeCommandRunner: Deterministic command execution with fail-closed semantics
- FakeGitClient: In-memory linear history with a real worktree directory
- FakeEventSink: Event capture for asserting the event stream
- FakeCancellation: Cancellation flag that trips on demand

Usage:
    from tests.fakes import FakeCommandRunner, FakeGitClient

    def test_something(tmp_path):
        git = FakeGitClient.linear(tmp_path / "repo", [["a.py"], ["b.py"]])
        runner = FakeCommandRunner(allow_unregistered=True)
        # test code that uses git and runner
"""

from tests.fakes.cancellation import FakeCancellation
from tests.fakes.command_runner import FakeCommandRunner, UnregisteredCommandError
from tests.fakes.event_sink import FakeEventSink, RecordedEvent
from tests.fakes.git_client import FakeCommit, FakeGitClient

__all__ = [
    "FakeCancellation",
    "FakeCommandRunner",
    "FakeCommit",
    "FakeEventSink",
    "FakeGitClient",
    "RecordedEvent",
    "UnregisteredCommandError",
]
