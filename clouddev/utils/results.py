import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from clouddev.utils.diag import Diag
from clouddev.utils.errors import DecryptError, PendingOperation, PendingOperationsError

class ResultKind(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BAILED = "bailed"
    PENDING_OPERATIONS = "pending operations"
    DECRYPT_FAILURE = "decrypt failure"

@dataclass
class UpdateResult:
    kind: ResultKind
    error: Optional[Exception] = None
    outputs: Dict[str, Any] = field(default_factory=dict)
    summary: Optional[Any] = None

    @classmethod
    def succeeded(cls, outputs: Optional[Dict[str, Any]] = None, summary: Any = None) -> 'UpdateResult':
        return cls(ResultKind.SUCCEEDED, outputs=outputs or {}, summary=summary)

    @classmethod
    def bail(cls) -> 'UpdateResult':
        return cls(ResultKind.BAILED)

    @property
    def is_bail(self) -> bool:
        return self.kind == ResultKind.BAILED

    @property
    def ok(self) -> bool:
        return self.kind == ResultKind.SUCCEEDED

PENDING_HEADER = re.compile(r"the current deployment has (\d+) resource\(s\) with pending operations")
PENDING_LINE = re.compile(r"^\s*\*\s+(urn:pulumi:\S+?),\s+interrupted while (\w+)", re.MULTILINE)
DECRYPT_LINE = re.compile(r"failed to decrypt encrypted configuration value '([^']+)': ?(.*)")

def classify_error(error: Exception, output: str = "") -> UpdateResult:
    """Map an engine failure to its result kind.

    The engine reports failures as text, so the error message and any captured
    output are searched for the known error shapes.
    """
    if isinstance(error, PendingOperationsError):
        return UpdateResult(ResultKind.PENDING_OPERATIONS, error)
    if isinstance(error, DecryptError):
        return UpdateResult(ResultKind.DECRYPT_FAILURE, error)

    text = f"{error}\n{output}"
    if PENDING_HEADER.search(text):
        operations = [PendingOperation(urn, op) for urn, op in PENDING_LINE.findall(text)]
        return UpdateResult(ResultKind.PENDING_OPERATIONS, PendingOperationsError(operations))

    match = DECRYPT_LINE.search(text)
    if match:
        return UpdateResult(ResultKind.DECRYPT_FAILURE, DecryptError(match.group(1), match.group(2).strip()))

    return UpdateResult(ResultKind.FAILED, error)

def format_pending_operations_error(e: PendingOperationsError) -> str:
    lines = [f"the current deployment has {len(e.operations)} resource(s) with pending operations:"]
    for op in e.operations:
        lines.append(f"  * {op.urn}, interrupted while {op.type}")
    return "\n".join(lines) + """

These resources are in an unknown state because the Pulumi CLI was interrupted while
waiting for changes to these resources to complete. You should confirm whether or not the
operations listed completed successfully by checking the state of the appropriate provider.
For example, if you are using DigitalOcean, you can confirm using the DigitalOcean Control Panel.

Once you have confirmed the status of the interrupted operations, you can repair your stack
using 'pulumi stack export' to export your stack to a file. For each operation that succeeded,
remove that operation from the "pending_operations" section of the file. Once this is complete,
use 'pulumi stack import' to import the repaired stack.

refusing to proceed"""

def format_decrypt_error(e: DecryptError) -> str:
    return f"""failed to decrypt encrypted configuration value '{e.key}': {e.err}
This can occur when a secret is copied from one stack to another. Encryption of secrets is done per-stack and
it is not possible to share an encrypted configuration value across stacks.

You can re-encrypt your configuration by running 'pulumi config set {e.key} [value] --secret' with your
new stack selected.

refusing to proceed"""

RESULT_FORMATTERS: Dict[ResultKind, Callable[[Any], str]] = {
    ResultKind.PENDING_OPERATIONS: format_pending_operations_error,
    ResultKind.DECRYPT_FAILURE: format_decrypt_error,
}

def print_engine_result(result: Optional[UpdateResult], diag: Diag) -> Optional[UpdateResult]:
    """Print the known engine failures in a human-friendly way.

    Returns:
        A bail result when the failure was printed here; otherwise the result
        unchanged, for the caller to report
    """
    if result is None or result.is_bail:
        return result

    formatter = RESULT_FORMATTERS.get(result.kind)
    if formatter is None:
        return result

    diag.errorf(formatter(result.error))
    return UpdateResult.bail()

def interpret_pulumi_error(error_text: str) -> str:
    """Convert Pulumi errors into clouddev-specific error messages."""
    error_mappings = [
        (r"error: no stack selected",
         "No Pulumi stack is selected. Run 'clouddev init -s <stack-name>' to create and select a stack."),
        (r"error: could not log in.*|problem logging in",
         "Failed to log in to the Pulumi backend. Check your Pulumi CLI installation and permissions on ~/.pulumi."),
        (r"error: stack '(.+)' already exists",
         "Stack already exists. Use a different stack name or run commands on the existing stack."),
        (r"error: \[409\] Conflict: Another update is currently in progress|is currently being updated|already being updated",
         "Another update is currently in progress for this stack. Wait for it to finish and try again."),
        (r"error: no Pulumi\.yaml project file found|no project file found in",
         "No Pulumi project found in the current directory. Run 'clouddev init' first."),
        (r"error: failed to load project: (.+)",
         "Failed to load Pulumi project. Check your Pulumi.yaml file for errors."),
        (r"passphrase must be set|incorrect passphrase",
         "The stack secrets could not be decrypted. Set PULUMI_CONFIG_PASSPHRASE to the passphrase used at 'clouddev init'."),
        (r"Unable to authenticate|DIGITALOCEAN_TOKEN|401 Unable to authenticate you",
         "DigitalOcean rejected the credentials. Export DIGITALOCEAN_TOKEN with a valid API token."),
    ]

    for pattern, message in error_mappings:
        if re.search(pattern, error_text):
            return message

    return f"Pulumi error: {error_text.strip()}"
