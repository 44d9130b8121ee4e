from typing import List, NamedTuple

class CloudDevError(Exception):
    """Base class for clouddev errors."""
    pass

class ConfigError(CloudDevError):
    """Raised when the configuration file or flags are missing a value or are malformed."""
    pass

class InvalidNameError(CloudDevError):
    """Raised for an empty stack name or one the backend rejects."""
    pass

class UnsupportedBackendError(CloudDevError):
    pass

class ProjectNotFoundError(CloudDevError):
    pass

class ProjectLoadError(CloudDevError):
    pass

class GitError(CloudDevError):
    """One or more failures while reading git metadata.

    Collects every failure so that a broken remote does not hide a broken HEAD.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        if len(self.errors) == 1:
            message = self.errors[0]
        else:
            lines = [f"{len(self.errors)} errors occurred:"]
            lines.extend(f"\t* {e}" for e in self.errors)
            message = "\n".join(lines)
        super().__init__(message)

class PendingOperation(NamedTuple):
    urn: str
    type: str

class PendingOperationsError(CloudDevError):
    """The stack state holds operations that were interrupted in a previous update."""

    def __init__(self, operations: List[PendingOperation]):
        self.operations = list(operations)
        super().__init__(
            f"the current deployment has {len(self.operations)} resource(s) with pending operations"
        )

class DecryptError(CloudDevError):
    """A secret configuration value could not be decrypted."""

    def __init__(self, key: str, err: str):
        self.key = key
        self.err = err
        super().__init__(f"failed to decrypt encrypted configuration value '{key}': {err}")

class BailError(CloudDevError):
    """The error has already been reported; stop without printing anything else."""

    def __init__(self):
        super().__init__("bail")
