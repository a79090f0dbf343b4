"""Cancellation handling for a revision walk.

The first SIGINT or SIGTERM does not interrupt the walk. The handler only
records the request; the orchestrator polls is_cancelled() between units of
work, so a test run that has already started completes and teardown always
runs.

A second SIGINT escalates: it raises KeyboardInterrupt in the main thread,
which stops a hung test run. The command runner terminates the child's
process group and the orchestrator still removes the worktree on the way out.

Key components:
- CancellationController: installs the handlers and exposes the flag
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from types import FrameType, TracebackType

__all__ = ["CANCEL_SIGNALS", "CancellationController"]

logger = logging.getLogger(__name__)

CANCEL_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class CancellationController:
    """Records SIGINT/SIGTERM as a one-way cancellation request.

    The flag only moves from not-requested to requested; it is never reset.

    Example:
        with CancellationController() as cancellation:
            while not cancellation.is_cancelled():
                ...
    """

    def __init__(self, signals: tuple[signal.Signals, ...] = CANCEL_SIGNALS) -> None:
        self._signals = signals
        self._event = threading.Event()
        self._previous: dict[signal.Signals, Any] = {}
        self._installed = False
        self._received: signal.Signals | None = None
        self._logged = False

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        """Register the handlers. A second call is a no-op.

        Raises:
            RuntimeError: If called from a thread other than the main thread.
        """
        if self._installed:
            return
        if threading.current_thread() is not threading.main_thread():
            raise RuntimeError(
                "Signal handlers can only be installed from the main thread"
            )
        for sig in self._signals:
            self._previous[sig] = signal.signal(sig, self._handle)
        self._installed = True

    def restore(self) -> None:
        """Reinstate the handlers that were active before install()."""
        if not self._installed:
            return
        for sig, previous in self._previous.items():
            # None means the previous handler was not installed from Python
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()
        self._installed = False

    def is_cancelled(self) -> bool:
        if not self._event.is_set():
            return False
        if not self._logged:
            self._logged = True
            name = self._received.name if self._received is not None else "signal"
            logger.info("Received %s, cancelling after the current step", name)
        return True

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        if self._event.is_set():
            if signum == signal.SIGINT:
                raise KeyboardInterrupt
            return
        self._received = signal.Signals(signum)
        self._event.set()

    def __enter__(self) -> CancellationController:
        self.install()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.restore()
