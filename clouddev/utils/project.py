from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import pulumi.automation as automation
import yaml

from clouddev.utils.errors import ProjectLoadError, ProjectNotFoundError

PROJECT_FILE_NAMES = ("Pulumi.yaml", "Pulumi.yml")

def new_project(name: str, runtime: str = "python", options: Optional[Mapping[str, Any]] = None, description: Optional[str] = None) -> automation.ProjectSettings:
    """Build project settings for a manifest."""
    runtime_info = automation.ProjectRuntimeInfo(name=runtime, options=dict(options) if options else None)
    return automation.ProjectSettings(name=name, runtime=runtime_info, description=description)

def project_to_dict(project: automation.ProjectSettings) -> Dict[str, Any]:
    runtime = project.runtime
    if isinstance(runtime, automation.ProjectRuntimeInfo):
        runtime_value: Any = {"name": runtime.name}
        if runtime.options:
            runtime_value["options"] = dict(runtime.options)
    else:
        runtime_value = runtime

    data: Dict[str, Any] = {"name": project.name, "runtime": runtime_value}
    if project.description:
        data["description"] = project.description
    return data

def write_project(project: automation.ProjectSettings, directory: Path) -> Path:
    """Write Pulumi.yaml for the project into directory, replacing any existing one.

    Returns:
        The path of the written manifest
    """
    path = directory / PROJECT_FILE_NAMES[0]
    content = yaml.safe_dump(project_to_dict(project), default_flow_style=False, sort_keys=False)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    except OSError as e:
        raise ProjectLoadError(f"could not write project file {path}: {e}") from e
    return path

def detect_project_path(start: Path) -> Optional[Path]:
    """Search upwards from start for a project manifest."""
    directory = start.absolute()
    while True:
        for file_name in PROJECT_FILE_NAMES:
            candidate = directory / file_name
            if candidate.is_file():
                return candidate
        if directory.parent == directory:
            return None
        directory = directory.parent

def load_project(path: Path) -> automation.ProjectSettings:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ProjectLoadError(f"failed to load Pulumi project located at {str(path)!r}: {e}") from e

    if not isinstance(data, dict):
        raise ProjectLoadError(f"failed to load Pulumi project located at {str(path)!r}: expected a mapping")
    name = data.get("name")
    if not name or not isinstance(name, str):
        raise ProjectLoadError(f"failed to load Pulumi project located at {str(path)!r}: project is missing a 'name' attribute")

    runtime = data.get("runtime")
    if isinstance(runtime, dict):
        if not runtime.get("name"):
            raise ProjectLoadError(f"failed to load Pulumi project located at {str(path)!r}: runtime is missing a 'name' attribute")
        runtime_info = automation.ProjectRuntimeInfo(name=runtime["name"], options=runtime.get("options"))
    elif isinstance(runtime, str) and runtime:
        runtime_info = automation.ProjectRuntimeInfo(name=runtime)
    else:
        raise ProjectLoadError(f"failed to load Pulumi project located at {str(path)!r}: project is missing a 'runtime' attribute")

    return automation.ProjectSettings(name=name, runtime=runtime_info, description=data.get("description"))

def read_project(work_dir: Path) -> Tuple[automation.ProjectSettings, Path]:
    """Locate and load the project manifest for work_dir.

    Returns:
        The project settings and the directory holding the manifest
    """
    path = detect_project_path(work_dir)
    if path is None:
        raise ProjectNotFoundError(
            f"no Pulumi.yaml project file found (searching upwards from {work_dir}). "
            "If you have not created a project yet, use `clouddev init` to do so"
        )
    return load_project(path), path.parent
