import shutil
import subprocess
from pathlib import Path

import pytest

from clouddev.utils.diag import Diag
from clouddev.utils.errors import GitError
from clouddev.utils.metadata import (
    GIT_AUTHOR,
    GIT_AUTHOR_EMAIL,
    GIT_DIRTY,
    GIT_HEAD,
    GIT_HEAD_NAME,
    VCS_REPO_KIND,
    VCS_REPO_NAME,
    VCS_REPO_OWNER,
    UpdateMetadata,
    add_git_metadata,
    get_update_metadata,
    git_commit_title,
    metadata_env_vars,
    try_get_vcs_info,
)

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(repo: Path, *args: str) -> str:
    return subprocess.run(["git", *args], cwd=str(repo), check=True, capture_output=True, text=True).stdout


@pytest.fixture
def isolated(tmp_path: Path, monkeypatch) -> Path:
    """A directory git cannot escape from while looking for a repository."""
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    work = tmp_path / "work"
    work.mkdir()
    return work


@pytest.fixture
def repo(isolated: Path, monkeypatch) -> Path:
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Ada Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "ada@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Cole Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "cole@example.com")
    git(isolated, "init", "-q")
    git(isolated, "symbolic-ref", "HEAD", "refs/heads/main")
    (isolated / "Pulumi.yaml").write_text("name: demo\nruntime: python\n")
    git(isolated, "add", "Pulumi.yaml")
    git(isolated, "commit", "-q", "-m", "Add droplet project\n\nLonger description.")
    return isolated


def test_no_repository_leaves_metadata_untouched(isolated: Path, diag: Diag) -> None:
    m = get_update_metadata("deploy", isolated, diag, environ={})
    assert m.message == "deploy"
    assert m.environment == {}


@requires_git
def test_add_git_metadata_without_repository(isolated: Path) -> None:
    m = UpdateMetadata(message="", environment={"keep": "me"})
    add_git_metadata(isolated, m, environ={})
    assert m.environment == {"keep": "me"}
    assert m.message == ""


@requires_git
def test_commit_metadata(repo: Path) -> None:
    m = UpdateMetadata()
    add_git_metadata(repo, m, environ={})

    assert m.message == "Add droplet project"
    assert m.environment[GIT_HEAD] == git(repo, "rev-parse", "HEAD").strip()
    assert m.environment[GIT_HEAD_NAME] == "refs/heads/main"
    assert m.environment[GIT_AUTHOR] == "Ada Author"
    assert m.environment[GIT_AUTHOR_EMAIL] == "ada@example.com"
    assert m.environment["git.committer"] == "Cole Committer"
    assert m.environment[GIT_DIRTY] == "false"
    assert VCS_REPO_OWNER not in m.environment


@requires_git
def test_explicit_message_is_kept(repo: Path) -> None:
    m = UpdateMetadata(message="manual deploy")
    add_git_metadata(repo, m, environ={})
    assert m.message == "manual deploy"


@requires_git
def test_dirty_worktree_and_remote(repo: Path) -> None:
    git(repo, "remote", "add", "origin", "git@github.com:darkowlzz/clouddev.git")
    (repo / "notes.txt").write_text("uncommitted\n")

    m = UpdateMetadata()
    add_git_metadata(repo, m, environ={})

    assert m.environment[GIT_DIRTY] == "true"
    assert m.environment[VCS_REPO_OWNER] == "darkowlzz"
    assert m.environment[VCS_REPO_NAME] == "clouddev"
    assert m.environment[VCS_REPO_KIND] == "github.com"


@requires_git
def test_detached_head_uses_ci_branch(repo: Path) -> None:
    git(repo, "checkout", "-q", "--detach")
    m = UpdateMetadata()
    add_git_metadata(repo, m, environ={"GITLAB_CI": "true", "CI_COMMIT_REF_NAME": "feature/x"})
    assert m.environment[GIT_HEAD_NAME] == "feature/x"


@requires_git
def test_detached_head_without_ci_omits_head_name(repo: Path) -> None:
    git(repo, "checkout", "-q", "--detach")
    m = UpdateMetadata()
    add_git_metadata(repo, m, environ={})
    assert GIT_HEAD_NAME not in m.environment


@requires_git
def test_empty_repository_error_is_swallowed(isolated: Path, diag: Diag) -> None:
    git(isolated, "init", "-q")
    diag.verbosity = 3

    m = get_update_metadata("", isolated, diag, environ={})

    assert GIT_HEAD not in m.environment
    assert "errors detecting git metadata" in diag.stderr.getvalue()


@requires_git
def test_empty_repository_raises_git_error(isolated: Path) -> None:
    git(isolated, "init", "-q")
    with pytest.raises(GitError, match="getting repository HEAD"):
        add_git_metadata(isolated, UpdateMetadata(), environ={})


def test_ci_metadata_is_layered_in(isolated: Path, diag: Diag) -> None:
    environ = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_RUN_ID": "42",
        "GITHUB_RUN_NUMBER": "7",
        "GITHUB_SHA": "abc123",
    }
    m = get_update_metadata("", isolated, diag, environ=environ)
    assert m.environment["ci.system"] == "GitHub"
    assert m.environment["ci.build.id"] == "42"
    assert m.environment["ci.build.number"] == "7"
    assert m.environment["ci.pr.headSHA"] == "abc123"
    assert "ci.pr.number" not in m.environment


@pytest.mark.parametrize("url,owner,repo,kind", [
    ("git@github.com:darkowlzz/clouddev.git", "darkowlzz", "clouddev", "github.com"),
    ("https://github.com/darkowlzz/clouddev", "darkowlzz", "clouddev", "github.com"),
    ("ssh://git@gitlab.com/group/sub/project.git", "group/sub", "project", "gitlab.com"),
    ("https://user@bitbucket.org/team/repo.git", "team", "repo", "bitbucket.org"),
    ("https://dev.azure.com/org/proj/_git/repo", "org", "proj/repo", "dev.azure.com"),
    ("git@ssh.dev.azure.com:v3/org/proj/repo", "org", "proj/repo", "dev.azure.com"),
])
def test_try_get_vcs_info(url: str, owner: str, repo: str, kind: str) -> None:
    info = try_get_vcs_info(url)
    assert (info.owner, info.repo, info.kind) == (owner, repo, kind)


@pytest.mark.parametrize("url", ["not a url", "https://github.com/onlyowner"])
def test_try_get_vcs_info_rejects(url: str) -> None:
    with pytest.raises(GitError):
        try_get_vcs_info(url)


def test_git_commit_title() -> None:
    assert git_commit_title("title\nbody") == "title"
    assert git_commit_title("title\r\nbody") == "title"
    assert git_commit_title("single") == "single"


def test_metadata_env_vars_outside_ci() -> None:
    assert metadata_env_vars({GIT_HEAD: "deadbeef", GIT_HEAD_NAME: "refs/heads/main"}) == {}


def test_metadata_env_vars_in_ci() -> None:
    env = metadata_env_vars({
        "ci.system": "Jenkins",
        "ci.build.number": "12",
        "ci.build.url": "https://ci.example.com/job/12",
        GIT_HEAD_NAME: "origin/main",
    })
    assert env == {
        "PULUMI_CI_SYSTEM": "Jenkins",
        "PULUMI_CI_BUILD_NUMBER": "12",
        "PULUMI_CI_BUILD_URL": "https://ci.example.com/job/12",
        "PULUMI_CI_BRANCH_NAME": "origin/main",
    }
