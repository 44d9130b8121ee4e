"""Detection of the CI/CD system clouddev is running under.

Each known system is identified by one environment variable; its build
details are read from the variables that system documents.
"""
import os
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple

@dataclass
class CIVars:
    name: str = ""
    build_id: str = ""
    build_number: str = ""
    build_type: str = ""
    build_url: str = ""
    sha: str = ""
    branch_name: str = ""
    commit_message: str = ""
    pr_number: str = ""

def _not_false(value: str) -> str:
    return "" if value == "false" else value

def _github(env: Mapping[str, str]) -> CIVars:
    run_id = env.get("GITHUB_RUN_ID", "")
    build_url = ""
    if env.get("GITHUB_SERVER_URL") and env.get("GITHUB_REPOSITORY") and run_id:
        build_url = f"{env['GITHUB_SERVER_URL']}/{env['GITHUB_REPOSITORY']}/actions/runs/{run_id}"
    pr_number = ""
    match = re.match(r"refs/pull/(\d+)/", env.get("GITHUB_REF", ""))
    if match:
        pr_number = match.group(1)
    return CIVars(
        name="GitHub",
        build_id=run_id,
        build_number=env.get("GITHUB_RUN_NUMBER", ""),
        build_type=env.get("GITHUB_EVENT_NAME", ""),
        build_url=build_url,
        sha=env.get("GITHUB_SHA", ""),
        branch_name=env.get("GITHUB_HEAD_REF") or env.get("GITHUB_REF", ""),
        pr_number=pr_number,
    )

def _gitlab(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name="GitLab CI/CD",
        build_id=env.get("CI_PIPELINE_ID", ""),
        build_number=env.get("CI_PIPELINE_IID", ""),
        build_type=env.get("CI_PIPELINE_SOURCE", ""),
        build_url=env.get("CI_PIPELINE_URL", ""),
        sha=env.get("CI_COMMIT_SHA", ""),
        branch_name=env.get("CI_COMMIT_REF_NAME", ""),
        commit_message=env.get("CI_COMMIT_MESSAGE", ""),
        pr_number=env.get("CI_MERGE_REQUEST_IID", ""),
    )

def _travis(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name="Travis CI",
        build_id=env.get("TRAVIS_JOB_ID", ""),
        build_number=env.get("TRAVIS_JOB_NUMBER", ""),
        build_type=env.get("TRAVIS_EVENT_TYPE", ""),
        build_url=env.get("TRAVIS_BUILD_WEB_URL", ""),
        sha=env.get("TRAVIS_PULL_REQUEST_SHA", ""),
        branch_name=env.get("TRAVIS_BRANCH", ""),
        commit_message=env.get("TRAVIS_COMMIT_MESSAGE", ""),
        pr_number=_not_false(env.get("TRAVIS_PULL_REQUEST", "")),
    )

def _circleci(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name="CircleCI",
        build_id=env.get("CIRCLE_BUILD_NUM", ""),
        build_url=env.get("CIRCLE_BUILD_URL", ""),
        sha=env.get("CIRCLE_SHA1", ""),
        branch_name=env.get("CIRCLE_BRANCH", ""),
        pr_number=env.get("CIRCLE_PR_NUMBER", ""),
    )

def _azure(env: Mapping[str, str]) -> CIVars:
    build_id = env.get("BUILD_BUILDID", "")
    build_url = ""
    if env.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI") and env.get("SYSTEM_TEAMPROJECT") and build_id:
        build_url = (
            f"{env['SYSTEM_TEAMFOUNDATIONCOLLECTIONURI']}{env['SYSTEM_TEAMPROJECT']}"
            f"/_build/results?buildId={build_id}"
        )
    return CIVars(
        name="Azure Pipelines",
        build_id=build_id,
        build_number=env.get("BUILD_BUILDNUMBER", ""),
        build_type=env.get("BUILD_REASON", ""),
        build_url=build_url,
        sha=env.get("BUILD_SOURCEVERSION", ""),
        branch_name=env.get("BUILD_SOURCEBRANCHNAME", ""),
        commit_message=env.get("BUILD_SOURCEVERSIONMESSAGE", ""),
        pr_number=env.get("SYSTEM_PULLREQUEST_PULLREQUESTNUMBER", ""),
    )

def _jenkins(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name="Jenkins",
        build_id=env.get("BUILD_ID", ""),
        build_number=env.get("BUILD_NUMBER", ""),
        build_url=env.get("BUILD_URL", ""),
        sha=env.get("GIT_COMMIT", ""),
        branch_name=env.get("BRANCH_NAME") or env.get("GIT_BRANCH", ""),
        pr_number=env.get("CHANGE_ID", ""),
    )

def _buildkite(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name="Buildkite",
        build_id=env.get("BUILDKITE_BUILD_ID", ""),
        build_number=env.get("BUILDKITE_BUILD_NUMBER", ""),
        build_url=env.get("BUILDKITE_BUILD_URL", ""),
        sha=env.get("BUILDKITE_COMMIT", ""),
        branch_name=env.get("BUILDKITE_BRANCH", ""),
        commit_message=env.get("BUILDKITE_MESSAGE", ""),
        pr_number=_not_false(env.get("BUILDKITE_PULL_REQUEST", "")),
    )

def _bitbucket(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name="Bitbucket Pipelines",
        build_number=env.get("BITBUCKET_BUILD_NUMBER", ""),
        sha=env.get("BITBUCKET_COMMIT", ""),
        branch_name=env.get("BITBUCKET_BRANCH", ""),
        pr_number=env.get("BITBUCKET_PR_ID", ""),
    )

def _generic(env: Mapping[str, str]) -> CIVars:
    return CIVars(
        name=env.get("PULUMI_CI_SYSTEM", ""),
        build_id=env.get("PULUMI_CI_BUILD_ID", ""),
        build_number=env.get("PULUMI_CI_BUILD_NUMBER", ""),
        build_type=env.get("PULUMI_CI_BUILD_TYPE", ""),
        build_url=env.get("PULUMI_CI_BUILD_URL", ""),
        sha=env.get("PULUMI_CI_PULL_REQUEST_SHA", ""),
        branch_name=env.get("PULUMI_CI_BRANCH_NAME", ""),
        pr_number=env.get("PULUMI_CI_PULL_REQUEST_NUMBER", ""),
    )

# Order matters: Jenkins-style variables such as BUILD_ID are also set by other systems.
CI_SYSTEMS: List[Tuple[str, Callable[[Mapping[str, str]], CIVars]]] = [
    ("PULUMI_CI_SYSTEM", _generic),
    ("GITHUB_ACTIONS", _github),
    ("GITLAB_CI", _gitlab),
    ("TRAVIS", _travis),
    ("CIRCLECI", _circleci),
    ("TF_BUILD", _azure),
    ("BUILDKITE", _buildkite),
    ("BITBUCKET_BUILD_NUMBER", _bitbucket),
    ("JENKINS_URL", _jenkins),
]

def detect_vars(environ: Optional[Mapping[str, str]] = None) -> CIVars:
    """Return the variables of the detected CI system, or empty CIVars outside CI."""
    env = os.environ if environ is None else environ
    for marker, reader in CI_SYSTEMS:
        if env.get(marker):
            return reader(env)
    return CIVars()

def ci_environment(vars: CIVars) -> Dict[str, str]:
    """Map detected CI variables onto update metadata keys, skipping empty values."""
    if not vars.name:
        return {}
    env = {"ci.system": vars.name}
    for key, value in (
        ("ci.build.id", vars.build_id),
        ("ci.build.number", vars.build_number),
        ("ci.build.type", vars.build_type),
        ("ci.build.url", vars.build_url),
        ("ci.pr.headSHA", vars.sha),
        ("ci.pr.number", vars.pr_number),
    ):
        if value:
            env[key] = value
    return env
