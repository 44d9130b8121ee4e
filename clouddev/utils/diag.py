import sys
from typing import Optional, TextIO

from colorama import Fore, Style

class Diag:
    """Diagnostic sink for operator-facing messages.

    Informational messages go to stdout, warnings and errors to stderr. Debug
    messages carry a level and are only printed when the verbosity reaches it.

    Args:
        verbosity: Number of -v flags given on the command line
        stdout: Stream for informational output (defaults to sys.stdout)
        stderr: Stream for diagnostics (defaults to sys.stderr)
        color: If False, never emit ANSI color codes
    """

    def __init__(
        self,
        verbosity: int = 0,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        color: bool = True,
    ):
        self.verbosity = verbosity
        self._stdout = stdout
        self._stderr = stderr
        self.color = color

    @property
    def stdout(self) -> TextIO:
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr or sys.stderr

    def _paint(self, color: str, text: str) -> str:
        if not self.color or not color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def infof(self, msg: str, color: str = "") -> None:
        print(self._paint(color, msg), file=self.stdout)

    def successf(self, msg: str) -> None:
        self.infof(msg, Fore.GREEN)

    def warningf(self, msg: str) -> None:
        print(self._paint(Fore.YELLOW, f"warning: {msg}"), file=self.stderr)

    def errorf(self, msg: str) -> None:
        print(self._paint(Fore.RED, f"error: {msg}"), file=self.stderr)

    def debugf(self, level: int, msg: str) -> None:
        if self.verbosity >= level:
            print(self._paint(Style.DIM, msg), file=self.stderr)

    def rawf(self, msg: str) -> None:
        """Write msg to stdout as is, without a trailing newline."""
        self.stdout.write(msg)
        self.stdout.flush()
