#!/usr/bin/env python3
import argparse
import sys
from io import StringIO
from pathlib import Path
from typing import List, Optional

import colorama
from colorama import Fore, Style

from clouddev.commands.completion import completion_command
from clouddev.commands.init import init_command
from clouddev.commands.up import up_command
from clouddev.commands.version import version_command
from clouddev.utils.config import Config, WorkspaceContext
from clouddev.utils.diag import Diag
from clouddev.utils.errors import BailError, CloudDevError
from clouddev.utils.results import interpret_pulumi_error

# Initialize colorama
colorama.init()

ASCII_ART = """
clouddev
"""

# Custom argument parser that provides colorized help output
class CloudDevArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        """Print a cleaner error message for bad arguments"""
        print(f"{Fore.MAGENTA}{ASCII_ART}{Style.RESET_ALL}", file=sys.stderr)

        if "required" in message:
            print(f"{Fore.RED}Error: Missing required arguments{Style.RESET_ALL}", file=sys.stderr)
        else:
            print(f"{Fore.RED}Error: {message}{Style.RESET_ALL}", file=sys.stderr)
        print(f"\nTo see usage information, run: {Fore.CYAN}{self.prog} --help{Style.RESET_ALL}\n", file=sys.stderr)

        sys.exit(2)

    def print_help(self, file=None):
        """Override print_help to colorize the output"""
        help_io = StringIO()
        super().print_help(help_io)
        lines = help_io.getvalue().split('\n')
        colorized_lines = []

        for line in lines:
            if line.startswith('usage:'):
                head, _, rest = line.partition(' ')
                colorized_lines.append(f"{Fore.YELLOW}{head}{Style.RESET_ALL} {rest}")
            elif line and ':' in line and line[0] != ' ' and not line.startswith('Example'):
                # Section headers (positional arguments, options)
                colorized_lines.append(f"{Fore.GREEN}{line}{Style.RESET_ALL}")
            elif line.strip().startswith('-'):
                parts = line.split('  ', 1)
                if len(parts) > 1:
                    indent = ' ' * (len(line) - len(line.lstrip()))
                    colorized_lines.append(f"{indent}{Fore.CYAN}{parts[0].strip()}{Style.RESET_ALL}  {parts[1]}")
                else:
                    colorized_lines.append(line)
            elif line.startswith('Example:'):
                head, _, rest = line.partition(':')
                colorized_lines.append(f"{Fore.MAGENTA}{head}:{Style.RESET_ALL}{rest}")
            else:
                colorized_lines.append(line)

        print('\n'.join(colorized_lines), file=file or sys.stdout)

class CloudDevHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom help formatter to tweak the help output appearance"""
    def __init__(self, prog):
        super().__init__(prog, max_help_position=35, width=100)

def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-s", "--stack-name", help="Stack name (defaults to the pulumi.stack config key)")

def build_parser() -> argparse.ArgumentParser:
    parser = CloudDevArgumentParser(
        prog="clouddev",
        description="Provision a DigitalOcean droplet with Pulumi",
        formatter_class=CloudDevHelpFormatter,
    )
    parser.add_argument("--config", type=Path, help="Config file (default: ./clouddev.yaml or ~/.clouddev.yaml)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase output verbosity (repeatable)")
    parser.add_argument("-w", "--work-dir", type=Path, default=Path("."), help="Working directory (default: current directory)")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser(
        "init",
        help="Initialize backend and stack",
        description="Log in to the local Pulumi backend at ~/, write Pulumi.yaml and create or select the stack.",
        epilog="Example: clouddev init -s dev",
        formatter_class=CloudDevHelpFormatter,
    )
    add_common_arguments(init_parser)
    init_parser.add_argument("-p", "--project", help="Project name written to Pulumi.yaml (default: stack name)")
    init_parser.add_argument("--runtime", help="Project runtime written to Pulumi.yaml (default: python)")
    init_parser.add_argument("--binary", help="Runtime binary option written to Pulumi.yaml")

    up_parser = subparsers.add_parser(
        "up",
        help="Provision cloud environment",
        description="Provision cloud environment as per the provided configuration.",
        epilog="Example: clouddev up -s dev --region nyc3 --ssh-key 12345",
        formatter_class=CloudDevHelpFormatter,
    )
    add_common_arguments(up_parser)
    up_parser.add_argument("--name", help="Droplet name (config key: name)")
    up_parser.add_argument("--image", help="Droplet image, e.g. ubuntu-22-04-x64 (config key: image)")
    up_parser.add_argument("--region", help="Droplet region (config key: region)")
    up_parser.add_argument("--size", help="Droplet size slug (config key: size)")
    up_parser.add_argument("--ssh-key", action="append", help="SSH key ID or fingerprint, repeatable (config key: sshKeys)")
    up_parser.add_argument("--tag", action="append", help="Droplet tag, repeatable (config key: tags)")
    up_parser.add_argument("-m", "--message", help="Update message (default: HEAD commit title)")
    up_parser.add_argument("--yes", dest="yes", action="store_true", default=True, help="Approve the update without asking (default)")
    up_parser.add_argument("--no-yes", dest="yes", action="store_false", help="Ask for confirmation after the preview")
    up_parser.add_argument("--skip-preview", action="store_true", help="Do not run a preview before the update")

    subparsers.add_parser(
        "version",
        help="Prints the clouddev version",
        description="Prints the clouddev version.",
        formatter_class=CloudDevHelpFormatter,
    )

    subparsers.add_parser(
        "completion",
        help="Output shell completion code",
        description="Output shell completion code.\n\nInstallation instructions:\n\n"
                    "\t$ clouddev completion > ~/.clouddev-completion\n"
                    "\t$ source ~/.clouddev-completion",
        formatter_class=CloudDevHelpFormatter,
    )

    return parser

def main(argv: Optional[List[str]] = None) -> None:
    """Main function for the clouddev CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    args.root_parser = parser

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    diag = Diag(verbosity=args.verbose)

    try:
        config = Config.from_file(args.config)
        context = WorkspaceContext(args.work_dir, diag)

        if args.command == "init":
            init_command(args, context, config)
        elif args.command == "up":
            up_command(args, context, config)
        elif args.command == "version":
            version_command(args, context, config)
        elif args.command == "completion":
            completion_command(args, context, config)
        else:
            parser.print_help()
            sys.exit(1)
    except BailError:
        sys.exit(1)
    except CloudDevError as e:
        print(f"{Fore.RED}Error: {str(e)}{Style.RESET_ALL}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        if args.verbose >= 3:
            raise
        print(f"{Fore.RED}Error: {interpret_pulumi_error(str(e))}{Style.RESET_ALL}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
