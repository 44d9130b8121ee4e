from argparse import Namespace

from clouddev.droplet import DropletConfig, droplet_program
from clouddev.utils.backend import UpdateOptions, current_backend
from clouddev.utils.config import Config, WorkspaceContext, get_stack_name
from clouddev.utils.errors import BailError, CloudDevError
from clouddev.utils.results import ResultKind, interpret_pulumi_error
from clouddev.utils.stack import ensure_stack
from clouddev.utils.update import deploy

def droplet_from_args(args: Namespace, config: Config) -> DropletConfig:
    """Read the droplet from config, letting command line flags win."""
    return DropletConfig.from_config(config.with_overrides({
        "name": args.name,
        "image": args.image,
        "region": args.region,
        "size": args.size,
        "sshKeys": args.ssh_key,
        "tags": args.tag,
    }))

def up_command(args: Namespace, context: WorkspaceContext, config: Config) -> None:
    """Execute the up command."""
    diag = context.diag
    stack_name = get_stack_name(args.stack_name, config)
    diag.debugf(1, f"StackName: {stack_name}")

    droplet = droplet_from_args(args, config)

    backend = current_backend(context)
    ensure_stack(backend, stack_name, diag)

    options = UpdateOptions(auto_approve=args.yes, skip_preview=args.skip_preview, color="never")
    result = deploy(
        context,
        stack_name,
        program=droplet_program(droplet),
        message=args.message or "",
        options=options,
        backend=backend,
    )

    if result.kind == ResultKind.SUCCEEDED:
        diag.successf(f"Droplet '{droplet.name}' is up")
        for key, value in sorted(result.outputs.items()):
            diag.infof(f"  {key}: {value}")
        return
    if result.is_bail:
        raise BailError()
    raise CloudDevError(interpret_pulumi_error(str(result.error))) from result.error
