import json
import re
import socket
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pulumi.automation as automation

from clouddev.utils.cancellation import CancellationContext, CancellationScopeSource
from clouddev.utils.config import WorkspaceContext
from clouddev.utils.errors import CloudDevError, InvalidNameError, UnsupportedBackendError
from clouddev.utils.metadata import UpdateMetadata, metadata_env_vars
from clouddev.utils.project import read_project
from clouddev.utils.pulumi_utils import run_pulumi_command
from clouddev.utils.results import ResultKind, UpdateResult, classify_error

FILE_PATH_PREFIX = "file://"
LOCAL_BACKEND_URL = FILE_PATH_PREFIX + "~"

STACK_NAME_PART = re.compile(r"^[A-Za-z0-9_.-]+$")
MAX_STACK_NAME_LENGTH = 100

@dataclass(frozen=True)
class StackReference:
    name: str

    def __str__(self) -> str:
        return self.name

@dataclass
class UpdateOptions:
    auto_approve: bool = True
    skip_preview: bool = False
    color: str = "never"

@dataclass
class UpdateOperation:
    project: automation.ProjectSettings
    root: Path
    options: UpdateOptions
    scopes: CancellationScopeSource
    metadata: UpdateMetadata
    program: Optional[Callable[[], None]] = None

def is_file_state_backend_url(url: str) -> bool:
    return url.startswith(FILE_PATH_PREFIX)

def get_current_cloud_url(context: WorkspaceContext) -> str:
    """Return the backend URL the workspace is logged in to.

    PULUMI_BACKEND_URL wins over the "current" entry of credentials.json.
    """
    url = context.environ.get("PULUMI_BACKEND_URL")
    if url:
        return url

    credentials = context.pulumi_home_dir / "credentials.json"
    if not credentials.exists():
        return ""
    try:
        data = json.loads(credentials.read_text())
    except (OSError, ValueError) as e:
        raise CloudDevError(f"could not get cloud url: {e}") from e
    return data.get("current") or ""

class FileStateBackend:
    """Stacks kept on the local filesystem, driven through the Automation API."""

    def __init__(self, url: str, context: WorkspaceContext):
        self.url = url
        self.context = context

    @property
    def name(self) -> str:
        return socket.gethostname()

    def validate_stack_name(self, name: str) -> None:
        parts = name.split("/")
        if len(parts) > 3 or any(not part for part in parts):
            raise InvalidNameError(
                f"invalid stack name {name!r}: expected a name of the form [<org>/[<project>/]]<stack>"
            )
        stack = parts[-1]
        if not STACK_NAME_PART.match(stack):
            raise InvalidNameError(
                "a stack name may only contain alphanumeric, hyphens, underscores, or periods"
            )
        if len(stack) > MAX_STACK_NAME_LENGTH:
            raise InvalidNameError(f"a stack name cannot exceed {MAX_STACK_NAME_LENGTH} characters")

    def parse_stack_reference(self, name: str) -> StackReference:
        self.validate_stack_name(name)
        return StackReference(name)

    def env_vars(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        env = self.context.pulumi_env()
        env["PULUMI_BACKEND_URL"] = self.url
        if extra:
            env.update(extra)
        return env

    def workspace(self, root: Optional[Path] = None, program: Optional[Callable[[], None]] = None,
                  env_vars: Optional[Dict[str, str]] = None) -> automation.LocalWorkspace:
        """Open a workspace on the project rooted at root.

        The manifest is left as it is on disk: LocalWorkspace rewrites
        Pulumi.yaml whenever it is handed project settings.
        """
        if root is None:
            _, root = read_project(self.context.work_dir)
        return automation.LocalWorkspace(
            work_dir=str(root),
            pulumi_home=str(self.context.pulumi_home) if self.context.pulumi_home else None,
            program=program,
            env_vars=self.env_vars(env_vars),
        )

    def list_stacks(self) -> List[str]:
        try:
            return [summary.name for summary in self.workspace().list_stacks()]
        except automation.CommandError as e:
            raise CloudDevError(f"could not list stacks: {e}") from e

    def get_stack(self, ref: StackReference) -> Optional[StackReference]:
        """Return ref if the stack exists, None if it does not."""
        for name in self.list_stacks():
            # Project scoped backends report fully qualified names
            if name == ref.name or name.endswith("/" + ref.name):
                return ref
        return None

    def create_stack(self, ref: StackReference) -> StackReference:
        try:
            automation.Stack.create(ref.name, self.workspace())
        except automation.StackAlreadyExistsError as e:
            raise CloudDevError(f"stack '{ref}' already exists") from e
        except automation.CommandError as e:
            raise CloudDevError(f"could not create stack '{ref}': {e}") from e
        return ref

    def set_current_stack(self, ref: StackReference) -> None:
        self.workspace().select_stack(ref.name)

    def update(self, ref: StackReference, op: UpdateOperation) -> UpdateResult:
        """Run preview (unless skipped) and update for the stack.

        Blocks until the engine finishes. Each engine run gets its own
        cancellation scope; the engine process receives the same interrupt
        from the terminal and unwinds on its own. The CI part of the update
        metadata is handed to the engine through its PULUMI_CI_* variables.
        """
        diag = self.context.diag
        diag.debugf(1, f"Updating project {op.project.name} in {op.root}")
        ws = self.workspace(op.root, op.program, metadata_env_vars(op.metadata.environment))
        try:
            stack = automation.Stack.select(ref.name, ws)
        except automation.StackNotFoundError as e:
            raise CloudDevError(f"could not get stack '{ref}'") from e

        captured = []

        def on_output(line: str) -> None:
            captured.append(line)
            diag.infof(line.rstrip("\n"))

        if not op.options.skip_preview:
            with op.scopes.new_scope(diag.rawf, is_preview=True) as scope:
                try:
                    stack.preview(message=op.metadata.message, color=op.options.color, on_output=on_output)
                except automation.CommandError as e:
                    return engine_failure(scope.context, e, "".join(captured))
                # The engine may finish the preview even though ^C arrived
                if scope.context.cancel_err is not None:
                    return UpdateResult(ResultKind.FAILED, scope.context.cancel_err)
            if not op.options.auto_approve and not confirm_update():
                diag.infof("confirmation declined, not proceeding with the update")
                return UpdateResult.bail()

        with op.scopes.new_scope(diag.rawf, is_preview=False) as scope:
            try:
                up_result = stack.up(message=op.metadata.message, color=op.options.color, on_output=on_output)
            except automation.CommandError as e:
                return engine_failure(scope.context, e, "".join(captured))

        outputs = {key: value.value for key, value in up_result.outputs.items()}
        return UpdateResult.succeeded(outputs, up_result.summary)

def engine_failure(cancellation: CancellationContext, error: Exception, output: str) -> UpdateResult:
    """Classify an engine error, reporting an interrupted run as cancelled."""
    if cancellation.cancel_err is not None:
        return UpdateResult(ResultKind.FAILED, cancellation.terminate_err or cancellation.cancel_err)
    return classify_error(error, output)

def confirm_update() -> bool:
    try:
        answer = input("Do you want to perform this update? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")

def current_backend(context: WorkspaceContext) -> FileStateBackend:
    """Resolve the backend the workspace is configured to use.

    Raises:
        UnsupportedBackendError: For anything other than a file:// backend
    """
    url = get_current_cloud_url(context)
    if is_file_state_backend_url(url):
        return FileStateBackend(url, context)
    raise UnsupportedBackendError("non-filestate backend unsupported")

def login_local_backend(context: WorkspaceContext, url: str = LOCAL_BACKEND_URL) -> FileStateBackend:
    """Log the Pulumi CLI in to a local backend and return it."""
    try:
        run_pulumi_command(
            ["pulumi", "login", url],
            str(context.work_dir),
            context.diag,
            env_vars=context.pulumi_env(),
            suppress_output=context.diag.verbosity == 0,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        output = getattr(e, "output", "") or str(e)
        raise CloudDevError(f"problem logging in: {output.strip()}") from e

    backend = FileStateBackend(url, context)
    context.diag.infof(f"Logged in to {backend.name} ({backend.url})")
    return backend
