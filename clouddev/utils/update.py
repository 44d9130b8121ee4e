from typing import Callable, Optional

from clouddev.utils.backend import FileStateBackend, UpdateOperation, UpdateOptions, current_backend
from clouddev.utils.cancellation import CancellationScopeSource
from clouddev.utils.config import WorkspaceContext
from clouddev.utils.errors import CloudDevError
from clouddev.utils.metadata import get_update_metadata
from clouddev.utils.project import read_project
from clouddev.utils.results import UpdateResult, print_engine_result
from clouddev.utils.stack import resolve_stack_reference

def default_update_options() -> UpdateOptions:
    return UpdateOptions(auto_approve=True, skip_preview=False, color="never")

def deploy(
    context: WorkspaceContext,
    stack_name: str,
    program: Optional[Callable[[], None]] = None,
    message: str = "",
    options: Optional[UpdateOptions] = None,
    backend: Optional[FileStateBackend] = None,
    scopes: Optional[CancellationScopeSource] = None,
) -> UpdateResult:
    """Run an update of stack_name and classify the outcome.

    Args:
        context: Workspace the update runs in
        stack_name: Stack to update; it must already exist
        program: Inline Pulumi program declaring the resources
        message: Update message; defaults to the HEAD commit title
        options: Update options; defaults to auto-approve without color
        backend: Backend to use instead of the configured one
        scopes: Source of the cancellation scope wrapped around the update

    Returns:
        The classified result. Known engine failures have already been
        printed and come back as a bail result.
    """
    diag = context.diag
    if backend is None:
        backend = current_backend(context)

    ref = resolve_stack_reference(backend, stack_name)
    try:
        stack = backend.get_stack(ref)
    except CloudDevError as e:
        raise CloudDevError(f"could not get stack: {e}") from e
    if stack is None:
        raise CloudDevError(f"could not get stack: no stack named '{stack_name}' found")

    diag.debugf(1, "Reading project...")
    project, root = read_project(context.work_dir)

    metadata = get_update_metadata(message, root, diag, context.environ)
    for key, value in sorted(metadata.environment.items()):
        diag.debugf(2, f"metadata {key}={value}")

    operation = UpdateOperation(
        project=project,
        root=root,
        options=options or default_update_options(),
        scopes=scopes or CancellationScopeSource(),
        metadata=metadata,
        program=program,
    )

    result = backend.update(stack, operation)
    return print_engine_result(result, diag)
