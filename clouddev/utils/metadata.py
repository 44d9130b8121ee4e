import re
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, NamedTuple, Optional

from clouddev.utils.ci import CIVars, ci_environment, detect_vars
from clouddev.utils.diag import Diag
from clouddev.utils.errors import GitError

# Keys of the update environment bag
GIT_HEAD = "git.head"
GIT_HEAD_NAME = "git.headName"
GIT_DIRTY = "git.dirty"
GIT_COMMITTER = "git.committer"
GIT_COMMITTER_EMAIL = "git.committer.email"
GIT_AUTHOR = "git.author"
GIT_AUTHOR_EMAIL = "git.author.email"
VCS_REPO_OWNER = "vcs.owner"
VCS_REPO_NAME = "vcs.repo"
VCS_REPO_KIND = "vcs.kind"

AZURE_DEVOPS_HOST = "dev.azure.com"

@dataclass
class UpdateMetadata:
    message: str = ""
    environment: Dict[str, str] = field(default_factory=dict)

class VCSInfo(NamedTuple):
    owner: str
    repo: str
    kind: str

def run_git(args: List[str], cwd: Path) -> str:
    """Run git in cwd and return its stdout.

    Raises:
        GitError: If git is not installed or exits non-zero
    """
    git = shutil.which("git")
    if git is None:
        raise GitError(["git executable not found on PATH"])
    result = subprocess.run([git, *args], cwd=str(cwd), capture_output=True, text=True)
    if result.returncode != 0:
        raise GitError([f"'git {' '.join(args)}' failed: {result.stderr.strip()}"])
    return result.stdout

def get_git_repository(root: Path) -> Optional[Path]:
    """Return the top level of the git repository containing root, or None."""
    git = shutil.which("git")
    if git is None:
        raise GitError(["git executable not found on PATH"])
    if not root.is_dir():
        return None
    result = subprocess.run([git, "rev-parse", "--show-toplevel"], cwd=str(root), capture_output=True, text=True)
    if result.returncode != 0:
        if "not a git repository" in result.stderr.lower():
            return None
        raise GitError([f"detecting Git repository: {result.stderr.strip()}"])
    return Path(result.stdout.strip())

def get_git_remote_url(repo: Path, remote: str) -> str:
    """Return the URL of remote, or an empty string when it is not configured."""
    git = shutil.which("git")
    if git is None:
        raise GitError(["git executable not found on PATH"])
    result = subprocess.run(
        [git, "config", "--get", f"remote.{remote}.url"], cwd=str(repo), capture_output=True, text=True
    )
    # Exit code 1 means the key is not set
    if result.returncode == 1:
        return ""
    if result.returncode != 0:
        raise GitError([f"detecting Git remote URL: {result.stderr.strip()}"])
    return result.stdout.strip()

def try_get_vcs_info(remote_url: str) -> VCSInfo:
    """Split a git remote URL into owner, repository and hosting kind.

    Handles scp-like SSH remotes (git@host:owner/repo.git) and URL remotes
    (https://host/owner/repo, ssh://git@host/owner/repo). Nested GitLab groups
    end up in the owner.
    """
    url = remote_url.strip()
    scp = re.match(r"^(?:[^@/]+@)?([^:/]+):(?!//)(.+)$", url)
    full = re.match(r"^[a-z][a-z0-9+.-]*://(?:[^@/]+@)?([^/:]+)(?::\d+)?/(.+)$", url, re.IGNORECASE)
    if full:
        host, path = full.group(1), full.group(2)
    elif scp:
        host, path = scp.group(1), scp.group(2)
    else:
        raise GitError([f"detecting VCS project information: could not parse remote URL {remote_url!r}"])

    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-len(".git")]
    parts = [p for p in path.split("/") if p]

    host = host.lower()
    if host.endswith(AZURE_DEVOPS_HOST) or host.endswith("visualstudio.com"):
        if parts and parts[0] == "v3":
            parts = parts[1:]
        parts = [p for p in parts if p != "_git"]
        if len(parts) < 3:
            raise GitError([f"detecting VCS project information: unexpected Azure DevOps URL {remote_url!r}"])
        return VCSInfo(owner=parts[0], repo=f"{parts[1]}/{parts[-1]}", kind=AZURE_DEVOPS_HOST)

    if len(parts) < 2:
        raise GitError([f"detecting VCS project information: could not find owner and repository in {remote_url!r}"])
    return VCSInfo(owner="/".join(parts[:-1]), repo=parts[-1], kind=host)

def add_git_remote_metadata(repo: Path, env: Dict[str, str]) -> None:
    remote_url = get_git_remote_url(repo, "origin")
    if not remote_url:
        return
    vcs = try_get_vcs_info(remote_url)
    env[VCS_REPO_OWNER] = vcs.owner
    env[VCS_REPO_NAME] = vcs.repo
    env[VCS_REPO_KIND] = vcs.kind

def git_commit_title(message: str) -> str:
    """Turn a commit message into its title, the first line."""
    return message.split("\r", 1)[0].split("\n", 1)[0]

def is_git_worktree_dirty(repo_root: Path) -> bool:
    return bool(run_git(["status", "--porcelain", "-z"], repo_root))

def add_git_commit_metadata(repo: Path, repo_root: Path, m: UpdateMetadata, ci_vars: CIVars) -> None:
    # In CI the checkout is often a detached HEAD, so fall back to what the CI system reports.
    try:
        head = run_git(["rev-parse", "HEAD"], repo).strip()
    except GitError as e:
        raise GitError([f"getting repository HEAD: {e}"]) from e
    m.environment[GIT_HEAD] = head

    try:
        fields = run_git(["log", "-1", "--format=%an%x00%ae%x00%cn%x00%ce%x00%B", head], repo)
    except GitError as e:
        raise GitError([f"getting HEAD commit info: {e}"]) from e
    author, author_email, committer, committer_email, body = (fields.split("\x00", 4) + [""] * 5)[:5]

    try:
        head_name = run_git(["symbolic-ref", "-q", "HEAD"], repo).strip()
    except GitError:
        head_name = "HEAD"
    if head_name == "HEAD" and ci_vars.branch_name:
        head_name = ci_vars.branch_name
    if head_name != "HEAD":
        m.environment[GIT_HEAD_NAME] = head_name

    message = body.strip()
    if not message and ci_vars.commit_message:
        message = ci_vars.commit_message
    if not m.message:
        m.message = git_commit_title(message)

    m.environment[GIT_COMMITTER] = committer
    m.environment[GIT_COMMITTER_EMAIL] = committer_email
    m.environment[GIT_AUTHOR] = author
    m.environment[GIT_AUTHOR_EMAIL] = author_email

    try:
        dirty = is_git_worktree_dirty(repo_root)
    except GitError as e:
        raise GitError([f"checking git worktree dirty state: {e}"]) from e
    m.environment[GIT_DIRTY] = "true" if dirty else "false"

def add_git_metadata(repo_root: Path, m: UpdateMetadata, environ: Optional[Mapping[str, str]] = None) -> None:
    """Populate the metadata environment with git-related values.

    Does nothing when repo_root is not inside a git repository.

    Raises:
        GitError: Collecting every remote and commit failure
    """
    repo = get_git_repository(repo_root)
    if repo is None:
        return

    errors = []
    try:
        add_git_remote_metadata(repo, m.environment)
    except GitError as e:
        errors.extend(e.errors)

    try:
        add_git_commit_metadata(repo, repo_root, m, detect_vars(environ))
    except GitError as e:
        errors.extend(e.errors)

    if errors:
        raise GitError(errors)

def add_ci_metadata(env: Dict[str, str], environ: Optional[Mapping[str, str]] = None) -> None:
    env.update(ci_environment(detect_vars(environ)))

def get_update_metadata(message: str, root: Path, diag: Diag, environ: Optional[Mapping[str, str]] = None) -> UpdateMetadata:
    """Gather update metadata on a best-effort basis; git failures are only logged."""
    m = UpdateMetadata(message=message, environment={})

    try:
        add_git_metadata(root, m, environ)
    except GitError as e:
        diag.debugf(3, f"errors detecting git metadata: {e}")

    add_ci_metadata(m.environment, environ)
    return m

# Update metadata keys and the generic CI variables the Pulumi CLI reads them back from
CI_ENV_VARS = (
    ("ci.system", "PULUMI_CI_SYSTEM"),
    ("ci.build.id", "PULUMI_CI_BUILD_ID"),
    ("ci.build.number", "PULUMI_CI_BUILD_NUMBER"),
    ("ci.build.type", "PULUMI_CI_BUILD_TYPE"),
    ("ci.build.url", "PULUMI_CI_BUILD_URL"),
    ("ci.pr.headSHA", "PULUMI_CI_PULL_REQUEST_SHA"),
    ("ci.pr.number", "PULUMI_CI_PULL_REQUEST_NUMBER"),
)

def metadata_env_vars(environment: Mapping[str, str]) -> Dict[str, str]:
    """Translate the CI part of the environment bag into engine variables.

    The engine reads git metadata from the repository itself; outside CI
    there is nothing to hand over.
    """
    if not environment.get("ci.system"):
        return {}
    env = {var: environment[key] for key, var in CI_ENV_VARS if environment.get(key)}
    head_name = environment.get(GIT_HEAD_NAME, "")
    if head_name:
        if head_name.startswith("refs/heads/"):
            head_name = head_name[len("refs/heads/"):]
        env["PULUMI_CI_BRANCH_NAME"] = head_name
    return env
