import os
import subprocess
from typing import Callable, Dict, List, Optional

from clouddev.utils.diag import Diag

def run_pulumi_command(
    command: List[str],
    cwd: str,
    diag: Diag,
    env_vars: Optional[Dict[str, str]] = None,
    on_output: Optional[Callable[[str], None]] = None,
    suppress_output: bool = False,
) -> str:
    """Run a Pulumi CLI command, streaming its output.

    Args:
        command: The command to run as a list of strings
        cwd: The working directory to run the command in
        diag: Sink for the streamed output
        env_vars: Extra environment variables for the command
        on_output: Optional callback function that receives each line of output
        suppress_output: If True, don't print any output to console

    Returns:
        The complete command output as a string

    Raises:
        subprocess.CalledProcessError: If the command exits non-zero
    """
    env = os.environ.copy()
    env.update(env_vars or {})

    process = subprocess.Popen(
        command,
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        bufsize=1,  # Line buffered
        env=env,
    )

    output_lines = []
    for line in iter(process.stdout.readline, ''):
        output_lines.append(line)
        if not suppress_output:
            diag.infof(line.rstrip())
        if on_output:
            on_output(line)

    process.stdout.close()
    return_code = process.wait()

    output = ''.join(output_lines)
    if return_code != 0:
        raise subprocess.CalledProcessError(return_code, command, output)
    return output
