import signal
import threading
from enum import Enum
from typing import Callable, Optional

from colorama import Fore, Style

class CancellationState(Enum):
    NONE = "none"
    CANCEL_REQUESTED = "cancel requested"
    TERMINATE_REQUESTED = "terminate requested"

class CancelledError(Exception):
    pass

class TerminatedError(CancelledError):
    pass

class CancellationContext:
    """Token shared between the interrupt handler and the backend.

    The handler only moves the token forward; the backend looks at it and
    decides how to unwind.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = CancellationState.NONE

    @property
    def state(self) -> CancellationState:
        with self._lock:
            return self._state

    @property
    def cancel_err(self) -> Optional[CancelledError]:
        if self.state == CancellationState.NONE:
            return None
        return CancelledError("update cancelled")

    @property
    def terminate_err(self) -> Optional[TerminatedError]:
        if self.state != CancellationState.TERMINATE_REQUESTED:
            return None
        return TerminatedError("update terminated")

    def cancel(self) -> None:
        with self._lock:
            if self._state == CancellationState.NONE:
                self._state = CancellationState.CANCEL_REQUESTED

    def terminate(self) -> None:
        with self._lock:
            self._state = CancellationState.TERMINATE_REQUESTED

class CancellationScope:
    """Routes SIGINT into a CancellationContext for the duration of one operation.

    Args:
        events: Callback receiving the messages shown to the operator
        is_preview: Previews cannot orphan resources, so they skip that warning
    """

    def __init__(self, events: Callable[[str], None], is_preview: bool = False):
        self.context = CancellationContext()
        self.events = events
        self.is_preview = is_preview
        self._previous_handler = None
        self._installed = False

    def interrupt(self) -> CancellationState:
        """Handle one interrupt: the first cancels, any later one terminates."""
        if self.context.cancel_err is None:
            message = "^C received; cancelling. If you would like to terminate immediately, press ^C again.\n"
            if not self.is_preview:
                message += (
                    f"{Fore.LIGHTRED_EX}Note that terminating immediately may lead to orphaned resources "
                    f"and other inconsistencies.\n{Style.RESET_ALL}"
                )
            self.events(message)
            self.context.cancel()
        else:
            self.events(f"{Fore.LIGHTRED_EX}^C received; terminating{Style.RESET_ALL}\n")
            self.context.terminate()
        return self.context.state

    def _handle_sigint(self, signum, frame) -> None:
        self.interrupt()

    def open(self) -> 'CancellationScope':
        # Signal handlers can only be installed from the main thread
        if threading.current_thread() is threading.main_thread():
            self._previous_handler = signal.signal(signal.SIGINT, self._handle_sigint)
            self._installed = True
        return self

    def close(self) -> None:
        if self._installed:
            previous = self._previous_handler
            signal.signal(signal.SIGINT, previous if previous is not None else signal.SIG_DFL)
            self._installed = False

    def __enter__(self) -> 'CancellationScope':
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

class CancellationScopeSource:
    def new_scope(self, events: Callable[[str], None], is_preview: bool = False) -> CancellationScope:
        return CancellationScope(events, is_preview)
