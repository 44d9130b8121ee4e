from argparse import Namespace

from clouddev.utils.config import Config, WorkspaceContext
from clouddev.version import VERSION

def version_command(args: Namespace, context: WorkspaceContext, config: Config) -> None:
    """Execute the version command."""
    context.diag.infof(f"version {VERSION}")
