import argparse
from argparse import Namespace
from typing import Dict, List

from clouddev.utils.config import Config, WorkspaceContext

COMPLETION_TEMPLATE = """# bash completion for {prog}
#
# Installation:
#
#   $ {prog} completion > ~/.{prog}-completion
#   $ source ~/.{prog}-completion

_{func}()
{{
    local cur command i
    cur="${{COMP_WORDS[COMP_CWORD]}}"
    command=""
    for (( i=1; i < COMP_CWORD; i++ )); do
        case "${{COMP_WORDS[i]}}" in
            {command_pattern}) command="${{COMP_WORDS[i]}}"; break ;;
        esac
    done

    case "${{command}}" in
{command_cases}
        *) COMPREPLY=( $(compgen -W "{commands} {global_options}" -- "${{cur}}") ) ;;
    esac
    return 0
}}

complete -F _{func} {prog}
"""

def option_strings(parser: argparse.ArgumentParser) -> List[str]:
    options = []
    for action in parser._actions:
        options.extend(action.option_strings)
    return options

def subcommands(parser: argparse.ArgumentParser) -> Dict[str, argparse.ArgumentParser]:
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            return dict(action.choices)
    return {}

def bash_completion_script(parser: argparse.ArgumentParser) -> str:
    """Generate a bash completion script for the commands and flags of parser."""
    prog = parser.prog
    commands = subcommands(parser)
    cases = []
    for name, subparser in commands.items():
        words = " ".join(option_strings(subparser))
        cases.append(f'        {name}) COMPREPLY=( $(compgen -W "{words}" -- "${{cur}}") ) ;;')

    return COMPLETION_TEMPLATE.format(
        prog=prog,
        func=prog.replace("-", "_"),
        command_pattern="|".join(commands) or "''",
        command_cases="\n".join(cases),
        commands=" ".join(commands),
        global_options=" ".join(option_strings(parser)),
    )

def completion_command(args: Namespace, context: WorkspaceContext, config: Config) -> None:
    """Execute the completion command."""
    context.diag.rawf(bash_completion_script(args.root_parser))
