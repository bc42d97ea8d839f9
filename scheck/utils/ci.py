"""CI environment detection.

Used to skip interactive prompts in automated pipelines and to describe
where a check ran.
"""

import os
import re
import sys
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class CIContext:
    """Context extracted from a CI environment.

    Attributes:
        provider: github-actions, gitlab-ci, circleci, jenkins or unknown.
        branch: Git branch name.
        commit_sha: Git commit SHA.
        pr_number: Pull/merge request number.
        repository: Repository name (owner/repo).
        is_pull_request: Whether this run is for a PR/MR.
    """

    provider: str
    branch: Optional[str] = None
    commit_sha: Optional[str] = None
    pr_number: Optional[int] = None
    repository: Optional[str] = None
    is_pull_request: bool = False


def _to_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value else None
    except ValueError:
        return None


def _github(env: Mapping[str, str]) -> CIContext:
    event = env.get("GITHUB_EVENT_NAME")
    is_pr = event in ("pull_request", "pull_request_target")
    ref = env.get("GITHUB_REF", "")

    if is_pr:
        branch = env.get("GITHUB_HEAD_REF")
        match = re.search(r"refs/pull/(\d+)", ref)
        pr_number = int(match.group(1)) if match else None
    else:
        branch = re.sub(r"^refs/heads/", "", ref) or None
        pr_number = None

    return CIContext(
        provider="github-actions",
        branch=branch,
        commit_sha=env.get("GITHUB_SHA"),
        pr_number=pr_number,
        repository=env.get("GITHUB_REPOSITORY"),
        is_pull_request=is_pr,
    )


def _gitlab(env: Mapping[str, str]) -> CIContext:
    mr_iid = env.get("CI_MERGE_REQUEST_IID")
    return CIContext(
        provider="gitlab-ci",
        branch=env.get("CI_COMMIT_REF_NAME"),
        commit_sha=env.get("CI_COMMIT_SHA"),
        pr_number=_to_int(mr_iid),
        repository=env.get("CI_PROJECT_PATH"),
        is_pull_request=bool(mr_iid),
    )


def _circleci(env: Mapping[str, str]) -> CIContext:
    pr_url = env.get("CIRCLE_PULL_REQUEST")
    match = re.search(r"/pull/(\d+)", pr_url or "")
    owner = env.get("CIRCLE_PROJECT_USERNAME")
    repo = env.get("CIRCLE_PROJECT_REPONAME")
    return CIContext(
        provider="circleci",
        branch=env.get("CIRCLE_BRANCH"),
        commit_sha=env.get("CIRCLE_SHA1"),
        pr_number=int(match.group(1)) if match else None,
        repository=f"{owner}/{repo}" if owner and repo else None,
        is_pull_request=bool(pr_url),
    )


def _jenkins(env: Mapping[str, str]) -> CIContext:
    change_id = env.get("CHANGE_ID")
    return CIContext(
        provider="jenkins",
        branch=env.get("BRANCH_NAME") or env.get("GIT_BRANCH"),
        commit_sha=env.get("GIT_COMMIT"),
        pr_number=_to_int(change_id),
        is_pull_request=bool(change_id),
    )


def detect_ci_context(env: Optional[Mapping[str, str]] = None) -> Optional[CIContext]:
    """Detect the CI provider and extract its context.

    Args:
        env: Environment mapping (defaults to os.environ).

    Returns:
        CIContext, or None when not running in CI. A generic ``CI`` variable
        without a known provider yields provider "unknown".
    """
    env = os.environ if env is None else env

    if env.get("GITHUB_ACTIONS") == "true":
        return _github(env)
    if env.get("GITLAB_CI") == "true":
        return _gitlab(env)
    if env.get("CIRCLECI") == "true":
        return _circleci(env)
    if env.get("JENKINS_URL"):
        return _jenkins(env)
    if env.get("CI", "").lower() not in ("", "0", "false"):
        return CIContext(provider="unknown")
    return None


def is_non_interactive(env: Optional[Mapping[str, str]] = None) -> bool:
    """Check if prompts must be skipped (no TTY on stdin, or running in CI)."""
    if not sys.stdin or not sys.stdin.isatty():
        return True
    return detect_ci_context(env) is not None
