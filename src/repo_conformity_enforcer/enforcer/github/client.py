"""GitHub API client wrapper for the conformity enforcer.

This intentionally wraps PyGithub to keep GitHub calls out of the reconciliation code and make
tests easy: every method takes plain owner/name strings and returns small frozen dataclasses.
All transport and API failures surface as :class:`GitHubAPIError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass

import requests
from github import Auth, Github, GithubException
from github.Repository import Repository

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_CONSECUTIVE_PAGE_FAILURES = 3


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub API returns an error response or cannot be reached."""

    def __init__(self, status_code: int | None, detail: str) -> None:
        super().__init__(f"GitHub API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    """Repository attributes consulted by the reconciliation checks."""

    owner: str
    name: str
    full_name: str
    archived: bool = False
    has_wiki: bool = False
    has_issues: bool = False
    allow_merge_commit: bool = False
    allow_rebase_merge: bool = False
    default_branch: str = "master"

    @classmethod
    def from_repository(cls, repo: Repository) -> RepositoryInfo:
        return cls(
            owner=repo.owner.login,
            name=repo.name,
            full_name=repo.full_name,
            archived=bool(repo.archived),
            has_wiki=bool(repo.has_wiki),
            has_issues=bool(repo.has_issues),
            allow_merge_commit=bool(repo.allow_merge_commit),
            allow_rebase_merge=bool(repo.allow_rebase_merge),
            default_branch=repo.default_branch or "master",
        )


@dataclass(frozen=True, slots=True)
class TeamAccess:
    """A team attached to a repository, with the permission the API reports."""

    id: int
    slug: str
    permission: str


@dataclass(frozen=True, slots=True)
class BranchProtectionState:
    """Current protection of a branch.

    ``required_approving_review_count`` is ``None`` when pull request reviews are not enforced;
    ``strict`` and ``contexts`` are ``None`` when status checks are not required.
    """

    required_approving_review_count: int | None
    strict: bool | None
    contexts: list[str] | None


def _format_github_exception(exc: GithubException) -> str:
    data = exc.data
    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return str(data) if data else exc.__class__.__name__


@contextmanager
def _api_errors(action: str) -> Iterator[None]:
    """Translate PyGithub and transport failures into :class:`GitHubAPIError`."""

    try:
        yield
    except GithubException as e:
        raise GitHubAPIError(e.status, f"{action}: {_format_github_exception(e)}") from e
    except requests.RequestException as e:
        raise GitHubAPIError(None, f"{action}: {e}") from e


class GitHubClient:
    """Small wrapper around PyGithub for the operations the reconciler needs."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")

        auth = Auth.Token(token)
        self._github = github_api or Github(auth=auth, base_url=base_url, per_page=PER_PAGE)
        logger.info("GitHub client initialised", extra={"base_url": base_url})

    def _repo(self, owner: str, name: str) -> Repository:
        # Lazy objects defer the GET; the first real call against them hits the API.
        return self._github.get_repo(f"{owner}/{name}", lazy=True)

    def list_organisation_repositories(self, organisation: str) -> list[RepositoryInfo]:
        """Return every repository of ``organisation``, in API order, deduplicated by full name.

        A failed page is logged, its results are skipped and enumeration moves on to the next
        page. Enumeration gives up after :data:`MAX_CONSECUTIVE_PAGE_FAILURES` failed pages in a
        row, or when the organisation itself cannot be looked up, and returns what it collected.
        """

        logger.debug("Fetching repositories", extra={"organisation": organisation})

        repos: list[RepositoryInfo] = []
        seen: set[str] = set()
        paginated = None
        page_index = 0
        failures = 0
        while True:
            try:
                with _api_errors(f"list repositories of {organisation} (page {page_index + 1})"):
                    if paginated is None:
                        org = self._github.get_organization(organisation)
                        paginated = org.get_repos(type="all")
                    page = [RepositoryInfo.from_repository(r) for r in paginated.get_page(page_index)]
            except GitHubAPIError as e:
                logger.error(
                    "Failed to fetch repository page; skipping it",
                    extra={"organisation": organisation, "page": page_index + 1, "error": str(e)},
                )
                failures += 1
                if paginated is None or failures >= MAX_CONSECUTIVE_PAGE_FAILURES:
                    logger.error(
                        "Giving up on repository enumeration; continuing with a partial list",
                        extra={"organisation": organisation, "count": len(repos)},
                    )
                    break
                page_index += 1
                continue

            failures = 0
            for info in page:
                if info.full_name in seen:
                    continue
                seen.add(info.full_name)
                repos.append(info)

            if len(page) < PER_PAGE:
                break
            page_index += 1

        logger.debug(
            "Fetched repositories", extra={"organisation": organisation, "count": len(repos)}
        )
        return repos

    def list_hook_urls(self, *, owner: str, name: str) -> list[str]:
        with _api_errors(f"list hooks of {owner}/{name}"):
            hooks = list(self._repo(owner, name).get_hooks())
        urls: list[str] = []
        for hook in hooks:
            url = (hook.config or {}).get("url")
            if isinstance(url, str):
                urls.append(url)
        return urls

    def create_hook(
        self,
        *,
        owner: str,
        name: str,
        url: str,
        content_type: str,
        secret: str,
        events: Sequence[str],
    ) -> None:
        config = {"url": url, "content_type": content_type}
        if secret:
            config["secret"] = secret
        with _api_errors(f"create hook on {owner}/{name}"):
            self._repo(owner, name).create_hook(
                name="web", config=config, events=list(events), active=True
            )

    def list_label_names(self, *, owner: str, name: str) -> list[str]:
        with _api_errors(f"list labels of {owner}/{name}"):
            return [label.name for label in self._repo(owner, name).get_labels()]

    def create_label(
        self, *, owner: str, name: str, label: str, color: str, description: str
    ) -> None:
        with _api_errors(f"create label {label!r} on {owner}/{name}"):
            self._repo(owner, name).create_label(label, color, description)

    def list_teams(self, *, owner: str, name: str) -> list[TeamAccess]:
        with _api_errors(f"list teams of {owner}/{name}"):
            return [
                TeamAccess(id=team.id, slug=team.slug, permission=team.permission or "")
                for team in self._repo(owner, name).get_teams()
            ]

    def grant_team_permission(
        self, *, owner: str, name: str, team_id: int, permission: str
    ) -> None:
        with _api_errors(f"grant team {team_id} {permission!r} on {owner}/{name}"):
            team = self._github.get_organization(owner).get_team(team_id)
            team.update_team_repository(self._repo(owner, name), permission)

    def edit_repository_settings(self, *, owner: str, name: str, **settings: bool) -> None:
        with _api_errors(f"edit settings of {owner}/{name}"):
            self._repo(owner, name).edit(**settings)

    def list_release_tags(self, *, owner: str, name: str) -> list[str]:
        """Return the tags of the first page of releases (enough to tell "none" from "some")."""

        with _api_errors(f"list releases of {owner}/{name}"):
            return [release.tag_name for release in self._repo(owner, name).get_releases().get_page(0)]

    def create_release(
        self,
        *,
        owner: str,
        name: str,
        tag: str,
        title: str,
        body: str,
        target_commitish: str,
        draft: bool = False,
        prerelease: bool = False,
    ) -> None:
        with _api_errors(f"create release {tag} on {owner}/{name}"):
            self._repo(owner, name).create_git_release(
                tag=tag,
                name=title,
                message=body,
                draft=draft,
                prerelease=prerelease,
                target_commitish=target_commitish,
            )

    def get_branch_protection(
        self, *, owner: str, name: str, branch: str
    ) -> BranchProtectionState | None:
        """Return the protection of ``branch``, or ``None`` when it is not protected (404)."""

        try:
            with _api_errors(f"get protection of {owner}/{name}@{branch}"):
                protection = self._repo(owner, name).get_branch(branch).get_protection()
                reviews = protection.required_pull_request_reviews
                checks = protection.required_status_checks
        except GitHubAPIError as e:
            if e.not_found:
                return None
            raise

        return BranchProtectionState(
            required_approving_review_count=(
                reviews.required_approving_review_count if reviews is not None else None
            ),
            strict=checks.strict if checks is not None else None,
            contexts=list(checks.contexts) if checks is not None else None,
        )

    def update_branch_protection(
        self,
        *,
        owner: str,
        name: str,
        branch: str,
        contexts: Sequence[str],
        required_approving_review_count: int = 1,
    ) -> None:
        with _api_errors(f"update protection of {owner}/{name}@{branch}"):
            self._repo(owner, name).get_branch(branch).edit_protection(
                strict=True,
                checks=list(contexts),
                enforce_admins=False,
                dismiss_stale_reviews=False,
                require_code_owner_reviews=False,
                required_approving_review_count=required_approving_review_count,
            )

    def get_required_signatures(self, *, owner: str, name: str, branch: str) -> bool:
        with _api_errors(f"get required signatures of {owner}/{name}@{branch}"):
            return bool(self._repo(owner, name).get_branch(branch).get_required_signatures())

    def require_signatures(self, *, owner: str, name: str, branch: str) -> None:
        with _api_errors(f"require signatures on {owner}/{name}@{branch}"):
            self._repo(owner, name).get_branch(branch).add_required_signatures()

    def close(self) -> None:
        """Close the underlying PyGithub connection."""

        self._github.close()
        logger.info("GitHub client closed")
