"""Test configuration and fixtures."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from unittest.mock import Mock

import pytest

from repo_conformity_enforcer.enforcer.github.client import (
    BranchProtectionState,
    GitHubClient,
    RepositoryInfo,
    TeamAccess,
)
from repo_conformity_enforcer.policy import Policy, WebhookSpec


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """Undo `configure_logging` so handlers never outlive a captured stdout."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def policy() -> Policy:
    """Provide the default policy with a webhook configured."""
    return Policy(
        organisation="octo-org",
        webhook=WebhookSpec(url="https://hooks.example.com/pr-label-check", secret="s3cret"),
    )


@pytest.fixture
def make_repo() -> Callable[..., RepositoryInfo]:
    """Build repositories that already satisfy the settings check unless overridden."""

    def _make(name: str = "octo-repo", **overrides: object) -> RepositoryInfo:
        fields: dict[str, object] = {
            "owner": "octo-org",
            "name": name,
            "full_name": f"octo-org/{name}",
            "default_branch": "master",
        }
        fields.update(overrides)
        return RepositoryInfo(**fields)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def conforming_github(policy: Policy) -> Mock:
    """A mocked client whose repositories already conform to the default policy."""

    github = Mock(spec=GitHubClient)
    github.list_hook_urls.return_value = [policy.webhook.url]
    github.list_label_names.return_value = [spec.name for spec in policy.labels]
    github.list_teams.return_value = [
        TeamAccess(id=grant.team_id, slug=grant.team_name.lower(), permission=grant.api_permission)
        for grant in policy.teams
    ]
    github.list_release_tags.return_value = ["v0.0.1"]
    github.get_branch_protection.return_value = BranchProtectionState(
        required_approving_review_count=1,
        strict=True,
        contexts=[policy.default_status_check],
    )
    github.get_required_signatures.return_value = True
    return github
