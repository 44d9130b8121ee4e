from argparse import Namespace

from clouddev.utils.backend import current_backend, login_local_backend
from clouddev.utils.config import Config, WorkspaceContext, get_stack_name
from clouddev.utils.errors import InvalidNameError
from clouddev.utils.project import PROJECT_FILE_NAMES, new_project, write_project
from clouddev.utils.stack import ensure_stack

def initialize_stack(context: WorkspaceContext, stack_name: str, project_name: str = "",
                     runtime: str = "python", binary: str = "") -> None:
    """Log in to the local backend, write Pulumi.yaml and select the stack.

    An existing Pulumi.yaml is backed up first and restored if anything fails.
    """
    diag = context.diag
    if not stack_name:
        raise InvalidNameError("missing stack name")

    work_dir = context.work_dir
    work_dir.mkdir(parents=True, exist_ok=True)
    diag.infof(f"Initializing clouddev project in: {work_dir}")

    login_local_backend(context)
    backend = current_backend(context)

    project_path = work_dir / PROJECT_FILE_NAMES[0]
    backup = None
    if project_path.exists():
        backup = work_dir / (PROJECT_FILE_NAMES[0] + ".backup")
        project_path.replace(backup)
        diag.warningf(f"found existing {project_path.name}, temporarily backed up to {backup}")

    try:
        options = {"binary": binary} if binary else None
        project = new_project(project_name or stack_name, runtime, options)
        write_project(project, work_dir)
        diag.successf(f"Pulumi.yaml created with project name: {project.name}")

        ensure_stack(backend, stack_name, diag)
    except Exception:
        if backup is not None and backup.exists():
            backup.replace(project_path)
            diag.warningf(f"restored original {project_path.name} from backup")
        raise

    if backup is not None:
        backup.unlink()
    diag.successf(f"Stack '{stack_name}' is ready to use!")

def init_command(args: Namespace, context: WorkspaceContext, config: Config) -> None:
    """Execute the init command."""
    stack_name = get_stack_name(args.stack_name, config)
    initialize_stack(
        context,
        stack_name,
        project_name=args.project or config.get_string("pulumi.project"),
        runtime=args.runtime or config.get_string("pulumi.runtime", "python"),
        binary=args.binary or config.get_string("pulumi.binary"),
    )
