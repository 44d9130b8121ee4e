import signal
import threading

from clouddev.utils.cancellation import (
    CancellationContext,
    CancellationScopeSource,
    CancellationState,
    TerminatedError,
)


def test_double_interrupt_cancels_then_terminates() -> None:
    events = []
    scope = CancellationScopeSource().new_scope(events.append, is_preview=False)

    assert scope.interrupt() == CancellationState.CANCEL_REQUESTED
    assert scope.context.cancel_err is not None
    assert scope.context.terminate_err is None
    assert "cancelling" in events[0]
    assert "orphaned resources" in events[0]

    assert scope.interrupt() == CancellationState.TERMINATE_REQUESTED
    assert isinstance(scope.context.terminate_err, TerminatedError)
    assert "terminating" in events[1]
    assert len(events) == 2


def test_preview_interrupt_skips_orphan_warning() -> None:
    events = []
    scope = CancellationScopeSource().new_scope(events.append, is_preview=True)
    scope.interrupt()
    assert "orphaned resources" not in events[0]


def test_sigint_is_routed_into_the_scope() -> None:
    events = []
    previous = signal.getsignal(signal.SIGINT)

    with CancellationScopeSource().new_scope(events.append) as scope:
        signal.raise_signal(signal.SIGINT)
        assert scope.context.state == CancellationState.CANCEL_REQUESTED
        signal.raise_signal(signal.SIGINT)
        assert scope.context.state == CancellationState.TERMINATE_REQUESTED

    assert signal.getsignal(signal.SIGINT) is previous
    assert len(events) == 2


def test_scope_outside_main_thread_does_not_install_handler() -> None:
    previous = signal.getsignal(signal.SIGINT)
    seen = []

    def run():
        with CancellationScopeSource().new_scope(lambda message: None) as scope:
            seen.append(signal.getsignal(signal.SIGINT))
            scope.interrupt()
            seen.append(scope.context.state)

    thread = threading.Thread(target=run)
    thread.start()
    thread.join()

    assert seen == [previous, CancellationState.CANCEL_REQUESTED]


def test_terminate_is_not_downgraded() -> None:
    context = CancellationContext()
    context.cancel()
    # Cancelling again does not undo a termination
    context.terminate()
    context.cancel()
    assert context.state == CancellationState.TERMINATE_REQUESTED
