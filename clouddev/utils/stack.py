from clouddev.utils.backend import FileStateBackend, StackReference
from clouddev.utils.diag import Diag
from clouddev.utils.errors import CloudDevError, InvalidNameError

def resolve_stack_reference(backend: FileStateBackend, name: str) -> StackReference:
    """Validate name and turn it into a reference on backend."""
    if not name:
        raise InvalidNameError("missing stack name")
    return backend.parse_stack_reference(name)

def ensure_stack(backend: FileStateBackend, name: str, diag: Diag) -> StackReference:
    """Make sure the named stack exists on backend and is the current stack.

    An existing stack is reused, a missing one is created. Backend failures
    propagate to the caller.
    """
    ref = resolve_stack_reference(backend, name)

    stack = backend.get_stack(ref)
    if stack is None:
        diag.infof(f"Creating new stack {name}")
        stack = backend.create_stack(ref)
    else:
        diag.infof(f"Using existing stack {stack}")

    diag.debugf(1, "Setting current stack...")
    try:
        backend.set_current_stack(stack)
    except Exception as e:
        raise CloudDevError(f"could not set current stack: {e}") from e

    return stack
