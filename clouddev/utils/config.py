import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from clouddev.utils.diag import Diag
from clouddev.utils.errors import ConfigError

CONFIG_FILE_NAME = "clouddev.yaml"
ENV_PREFIX = "CLOUDDEV_"

class Config:
    """Key/value configuration for clouddev.

    Values come from a YAML file and are looked up by dotted path, e.g.
    ``pulumi.stack``. A ``CLOUDDEV_<KEY>`` environment variable (dots replaced
    by underscores) overrides the file.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None, environ: Optional[Mapping[str, str]] = None, path: Optional[Path] = None):
        self.values = values or {}
        self.environ = os.environ if environ is None else environ
        self.path = path
        self.overrides: Dict[str, Any] = {}

    @classmethod
    def from_file(cls, path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> 'Config':
        """Load the configuration file.

        Without an explicit path, ./clouddev.yaml and then ~/.clouddev.yaml are
        tried. A missing default file gives an empty configuration; a missing
        explicit file is an error.
        """
        if path is not None:
            if not path.exists():
                raise ConfigError(f"config file not found: {path}")
            candidates = [path]
        else:
            candidates = [Path.cwd() / CONFIG_FILE_NAME, Path.home() / f".{CONFIG_FILE_NAME}"]

        for candidate in candidates:
            if candidate.is_file():
                try:
                    values = yaml.safe_load(candidate.read_text()) or {}
                except (OSError, yaml.YAMLError) as e:
                    raise ConfigError(f"could not read config file {candidate}: {e}") from e
                if not isinstance(values, dict):
                    raise ConfigError(f"config file {candidate} must contain a mapping")
                return cls(values, environ, candidate)

        return cls({}, environ)

    def with_overrides(self, overrides: Mapping[str, Any]) -> 'Config':
        """Return a copy in which the given keys win over environment and file."""
        config = Config(self.values, self.environ, self.path)
        config.overrides = dict(self.overrides)
        config.overrides.update({k: v for k, v in overrides.items() if v})
        return config

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.overrides:
            return self.overrides[key]

        env_key = ENV_PREFIX + key.replace(".", "_").upper()
        if env_key in self.environ:
            return self.environ[env_key]

        node: Any = self.values
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_string(self, key: str, default: str = "") -> str:
        value = self.get(key)
        if value is None:
            return default
        return str(value)

    def get_string_list(self, key: str) -> List[str]:
        value = self.get(key)
        if value is None or value == "":
            return []
        if isinstance(value, str):
            # Environment overrides are comma separated
            return [v.strip() for v in value.split(",") if v.strip()]
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

class WorkspaceContext:
    """Everything an operation needs to know about where it runs.

    Passed explicitly into the backend, stack and update helpers so that no
    helper reads process-wide state on its own.
    """

    def __init__(
        self,
        work_dir: Path,
        diag: Optional[Diag] = None,
        environ: Optional[Mapping[str, str]] = None,
        pulumi_home: Optional[Path] = None,
    ):
        self.work_dir = work_dir.absolute()
        self.diag = diag or Diag()
        self.environ = dict(os.environ if environ is None else environ)
        self.pulumi_home = pulumi_home

    @property
    def pulumi_home_dir(self) -> Path:
        if self.pulumi_home is not None:
            return self.pulumi_home
        if self.environ.get("PULUMI_HOME"):
            return Path(self.environ["PULUMI_HOME"])
        return Path.home() / ".pulumi"

    def pulumi_env(self) -> Dict[str, str]:
        """Environment variables handed to every Pulumi CLI invocation."""
        env = {}
        # The local backend encrypts secrets with a passphrase
        env["PULUMI_CONFIG_PASSPHRASE"] = self.environ.get("PULUMI_CONFIG_PASSPHRASE", "")
        if self.pulumi_home is not None:
            env["PULUMI_HOME"] = str(self.pulumi_home)
        return env

def get_stack_name(provided_name: Optional[str], config: Config) -> str:
    """Get stack name from the command line or the pulumi.stack config key."""
    if provided_name:
        return provided_name
    return config.get_string("pulumi.stack")
