"""Unit tests for the PyGithub client wrapper (mocked PyGithub objects)."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
import requests
from github import GithubException

from repo_conformity_enforcer.enforcer.github.client import (
    MAX_CONSECUTIVE_PAGE_FAILURES,
    PER_PAGE,
    BranchProtectionState,
    GitHubAPIError,
    GitHubClient,
    RepositoryInfo,
    TeamAccess,
)


def _gh_repo(name: str, *, owner: str = "octo-org", archived: bool = False) -> Mock:
    repo = Mock()
    # `name` is reserved by the Mock constructor.
    repo.name = name
    repo.owner.login = owner
    repo.full_name = f"{owner}/{name}"
    repo.archived = archived
    repo.has_wiki = False
    repo.has_issues = True
    repo.allow_merge_commit = False
    repo.allow_rebase_merge = False
    repo.default_branch = "main"
    return repo


def _client() -> tuple[GitHubClient, Mock]:
    github_api = Mock()
    return GitHubClient(token="test-token", github_api=github_api), github_api


def test_client_requires_token() -> None:
    with pytest.raises(ValueError, match="token"):
        GitHubClient(token="")


def test_repository_info_from_repository() -> None:
    info = RepositoryInfo.from_repository(_gh_repo("api", archived=True))

    assert info == RepositoryInfo(
        owner="octo-org",
        name="api",
        full_name="octo-org/api",
        archived=True,
        has_wiki=False,
        has_issues=True,
        allow_merge_commit=False,
        allow_rebase_merge=False,
        default_branch="main",
    )


def test_list_organisation_repositories_follows_pages_and_dedupes() -> None:
    client, github_api = _client()
    first = [_gh_repo(f"repo-{i}") for i in range(PER_PAGE)]
    second = [_gh_repo("repo-0"), _gh_repo("last")]
    paginated = github_api.get_organization.return_value.get_repos.return_value
    paginated.get_page.side_effect = [first, second]

    repos = client.list_organisation_repositories("octo-org")

    assert len(repos) == PER_PAGE + 1
    assert repos[0].name == "repo-0"
    assert repos[-1].name == "last"
    github_api.get_organization.assert_called_once_with("octo-org")
    github_api.get_organization.return_value.get_repos.assert_called_once_with(type="all")
    assert [c.args for c in paginated.get_page.call_args_list] == [(0,), (1,)]


def test_list_organisation_repositories_skips_failed_page(caplog) -> None:
    client, github_api = _client()
    first = [_gh_repo(f"repo-{i}") for i in range(PER_PAGE)]
    third = [_gh_repo("late-1"), _gh_repo("late-2")]
    paginated = github_api.get_organization.return_value.get_repos.return_value
    paginated.get_page.side_effect = [
        first,
        GithubException(502, {"message": "Bad gateway"}, None),
        third,
    ]

    repos = client.list_organisation_repositories("octo-org")

    assert len(repos) == PER_PAGE + 2
    assert [r.name for r in repos[-2:]] == ["late-1", "late-2"]
    assert [c.args[0] for c in paginated.get_page.call_args_list] == [0, 1, 2]
    assert "Failed to fetch repository page" in caplog.text


def test_list_organisation_repositories_gives_up_after_repeated_failures(caplog) -> None:
    client, github_api = _client()
    first = [_gh_repo(f"repo-{i}") for i in range(PER_PAGE)]
    paginated = github_api.get_organization.return_value.get_repos.return_value
    paginated.get_page.side_effect = [first] + [
        GithubException(502, {"message": "Bad gateway"}, None)
    ] * MAX_CONSECUTIVE_PAGE_FAILURES

    repos = client.list_organisation_repositories("octo-org")

    assert len(repos) == PER_PAGE
    assert paginated.get_page.call_count == 1 + MAX_CONSECUTIVE_PAGE_FAILURES
    assert "Giving up on repository enumeration" in caplog.text


def test_list_organisation_repositories_unknown_org_returns_empty() -> None:
    client, github_api = _client()
    github_api.get_organization.side_effect = GithubException(404, {"message": "Not Found"}, None)

    assert client.list_organisation_repositories("nope") == []


def test_list_hook_urls_reads_config_url() -> None:
    client, github_api = _client()
    github_api.get_repo.return_value.get_hooks.return_value = [
        Mock(config={"url": "https://a.example.com", "content_type": "json"}),
        Mock(config={}),
    ]

    assert client.list_hook_urls(owner="octo-org", name="api") == ["https://a.example.com"]
    github_api.get_repo.assert_called_with("octo-org/api", lazy=True)


def test_create_hook_omits_empty_secret() -> None:
    client, github_api = _client()

    client.create_hook(
        owner="octo-org",
        name="api",
        url="https://a.example.com",
        content_type="json",
        secret="",
        events=("pull_request",),
    )

    github_api.get_repo.return_value.create_hook.assert_called_once_with(
        name="web",
        config={"url": "https://a.example.com", "content_type": "json"},
        events=["pull_request"],
        active=True,
    )


def test_list_teams_maps_permission() -> None:
    client, github_api = _client()
    team = Mock(id=12345, slug="dev", permission="push")
    github_api.get_repo.return_value.get_teams.return_value = [team]

    assert client.list_teams(owner="octo-org", name="api") == [
        TeamAccess(id=12345, slug="dev", permission="push")
    ]


def test_grant_team_permission_uses_organisation_team() -> None:
    client, github_api = _client()

    client.grant_team_permission(owner="octo-org", name="api", team_id=54321, permission="pull")

    github_api.get_organization.assert_called_once_with("octo-org")
    team = github_api.get_organization.return_value.get_team.return_value
    github_api.get_organization.return_value.get_team.assert_called_once_with(54321)
    team.update_team_repository.assert_called_once_with(github_api.get_repo.return_value, "pull")


def test_list_release_tags_reads_first_page() -> None:
    client, github_api = _client()
    releases = github_api.get_repo.return_value.get_releases.return_value
    releases.get_page.return_value = [Mock(tag_name="v0.0.1")]

    assert client.list_release_tags(owner="octo-org", name="api") == ["v0.0.1"]
    releases.get_page.assert_called_once_with(0)


def test_get_branch_protection_returns_none_when_not_protected() -> None:
    client, github_api = _client()
    branch = github_api.get_repo.return_value.get_branch.return_value
    branch.get_protection.side_effect = GithubException(
        404, {"message": "Branch not protected"}, None
    )

    assert client.get_branch_protection(owner="octo-org", name="api", branch="master") is None


def test_get_branch_protection_raises_other_errors() -> None:
    client, github_api = _client()
    branch = github_api.get_repo.return_value.get_branch.return_value
    branch.get_protection.side_effect = GithubException(403, {"message": "Forbidden"}, None)

    with pytest.raises(GitHubAPIError) as exc_info:
        client.get_branch_protection(owner="octo-org", name="api", branch="master")

    assert exc_info.value.status_code == 403
    assert "Forbidden" in exc_info.value.detail


def test_get_branch_protection_maps_state() -> None:
    client, github_api = _client()
    protection = github_api.get_repo.return_value.get_branch.return_value.get_protection.return_value
    protection.required_pull_request_reviews.required_approving_review_count = 1
    protection.required_status_checks.strict = True
    protection.required_status_checks.contexts = ["pr-label-check"]

    assert client.get_branch_protection(
        owner="octo-org", name="api", branch="master"
    ) == BranchProtectionState(
        required_approving_review_count=1, strict=True, contexts=["pr-label-check"]
    )


def test_get_branch_protection_without_reviews_or_checks() -> None:
    client, github_api = _client()
    protection = github_api.get_repo.return_value.get_branch.return_value.get_protection.return_value
    protection.required_pull_request_reviews = None
    protection.required_status_checks = None

    assert client.get_branch_protection(
        owner="octo-org", name="api", branch="master"
    ) == BranchProtectionState(required_approving_review_count=None, strict=None, contexts=None)


def test_update_branch_protection_sends_combined_request() -> None:
    client, github_api = _client()

    client.update_branch_protection(
        owner="octo-org", name="api", branch="master", contexts=["build", "pr-label-check"]
    )

    github_api.get_repo.return_value.get_branch.assert_called_once_with("master")
    github_api.get_repo.return_value.get_branch.return_value.edit_protection.assert_called_once_with(
        strict=True,
        checks=["build", "pr-label-check"],
        enforce_admins=False,
        dismiss_stale_reviews=False,
        require_code_owner_reviews=False,
        required_approving_review_count=1,
    )


def test_signatures_round_trip_through_branch() -> None:
    client, github_api = _client()
    branch = github_api.get_repo.return_value.get_branch.return_value
    branch.get_required_signatures.return_value = False

    assert client.get_required_signatures(owner="octo-org", name="api", branch="master") is False
    client.require_signatures(owner="octo-org", name="api", branch="master")

    branch.add_required_signatures.assert_called_once_with()


def test_transport_errors_become_api_errors() -> None:
    client, github_api = _client()
    github_api.get_repo.return_value.get_labels.side_effect = requests.ConnectionError("down")

    with pytest.raises(GitHubAPIError) as exc_info:
        client.list_label_names(owner="octo-org", name="api")

    assert exc_info.value.status_code is None
    assert "list labels of octo-org/api" in str(exc_info.value)
