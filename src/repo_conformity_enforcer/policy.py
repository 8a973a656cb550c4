"""Conformity policy applied to every repository of an organisation.

The policy is a plain value: the compiled-in defaults below are what a run enforces, and tests
build their own instances to exercise the reconciler against synthetic repositories.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True, slots=True)
class LabelSpec:
    name: str
    color: str

    @property
    def description(self) -> str:
        return f"{self.name} change"


# Semver labels read by the pr-label-check webhook.
SEMVER_LABEL_SPECS: tuple[LabelSpec, ...] = (
    LabelSpec(name="major", color="b60205"),
    LabelSpec(name="minor", color="e8894a"),
    LabelSpec(name="patch", color="b5d3ff"),
)


TeamPermission = Literal["read", "write", "admin"]

# Repository teams endpoint vocabulary.
_API_PERMISSIONS: dict[str, str] = {
    "read": "pull",
    "write": "push",
    "admin": "admin",
}


@dataclass(frozen=True, slots=True)
class TeamGrant:
    team_name: str
    team_id: int
    permission: TeamPermission

    @property
    def api_permission(self) -> str:
        return _API_PERMISSIONS[self.permission]


# Replace with the teams and IDs of your organisation.
DEFAULT_TEAM_GRANTS: tuple[TeamGrant, ...] = (
    TeamGrant(team_name="Dev", team_id=12345, permission="write"),
    TeamGrant(team_name="ReadOnly", team_id=54321, permission="read"),
    TeamGrant(team_name="AllAdmins", team_id=99999, permission="admin"),
)


class WebhookSpec(BaseModel):
    """Webhook every repository should deliver pull request events to."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    secret: str = ""
    content_type: str = "json"
    events: tuple[str, ...] = ("pull_request",)

    @property
    def enabled(self) -> bool:
        return bool(self.url)


class ReleaseSpec(BaseModel):
    """Baseline release seeding the external semver release automation."""

    model_config = ConfigDict(frozen=True)

    tag: str = "v0.0.1"
    title: str = "v0.0.1 - Initial Release"
    body: str = "This is the initial semver release base number."
    draft: bool = False
    prerelease: bool = False
    target_commitish: str | None = Field(
        default=None,
        description="Commit target; the repository's default branch when unset",
    )


class Policy(BaseModel):
    """Everything the reconciler enforces, passed explicitly into it."""

    model_config = ConfigDict(frozen=True)

    organisation: str = "florx"
    skipped_repositories: tuple[str, ...] = ("repo-conformity-enforcer",)

    default_status_check: str = "pr-label-check"
    # Repositories whose name contains this substring also require the additional checks.
    # An empty substring is contained in every name.
    additional_status_check_contains: str = "service"
    additional_status_checks: tuple[str, ...] = ("build", "test")

    branch_to_protect: str = "master"
    required_approving_review_count: int = Field(default=1, ge=1)

    webhook: WebhookSpec = Field(default_factory=WebhookSpec)
    labels: tuple[LabelSpec, ...] = SEMVER_LABEL_SPECS
    teams: tuple[TeamGrant, ...] = DEFAULT_TEAM_GRANTS
    release: ReleaseSpec = Field(default_factory=ReleaseSpec)

    def is_skipped(self, repository_name: str) -> bool:
        return repository_name in self.skipped_repositories

    def wants_additional_checks(self, repository_name: str) -> bool:
        return self.additional_status_check_contains in repository_name

    def full_status_checks(self) -> list[str]:
        """Additional checks followed by the default check, in the order they are written."""

        return [*self.additional_status_checks, self.default_status_check]
