"""Repository reconciliation.

Each check reads the current remote state, compares it with the policy and issues at most the
corrective calls needed. Checks never raise on API failures: the error is logged and that one
aspect of that one repository stays unreconciled until the next run.
"""

from __future__ import annotations

import logging

from repo_conformity_enforcer.enforcer.github.client import (
    BranchProtectionState,
    GitHubAPIError,
    GitHubClient,
    RepositoryInfo,
)
from repo_conformity_enforcer.policy import Policy

logger = logging.getLogger(__name__)


class RepositoryReconciler:
    """Applies a :class:`Policy` to the repositories of one organisation."""

    def __init__(self, *, github: GitHubClient, policy: Policy) -> None:
        self._github = github
        self._policy = policy

    def reconcile_organisation(self) -> list[RepositoryInfo]:
        """Reconcile every non-archived, non-skipped repository.

        Returns:
            The repositories that were processed, in enumeration order.
        """

        organisation = self._policy.organisation
        logger.info("Getting all repositories", extra={"organisation": organisation})
        repositories = self._github.list_organisation_repositories(organisation)
        logger.info(
            "Got all repositories, processing one by one",
            extra={"organisation": organisation, "count": len(repositories)},
        )

        processed: list[RepositoryInfo] = []
        for repo in repositories:
            if repo.archived:
                logger.info("Skipping archived repository", extra={"repo": repo.full_name})
                continue
            if self._policy.is_skipped(repo.name):
                logger.info("Skipping repository on the skip list", extra={"repo": repo.full_name})
                continue
            self.reconcile_repository(repo)
            processed.append(repo)
        return processed

    def reconcile_repository(self, repo: RepositoryInfo) -> None:
        logger.info("Processing repository", extra={"repo": repo.full_name})

        self.check_hooks(repo)
        self.check_labels(repo)
        self.check_teams(repo)
        self.check_repo_settings(repo)
        self.check_releases(repo)
        protected = self.check_branch_protection(repo)
        self.check_signing_protection(repo, branch_protected=protected)

    def check_hooks(self, repo: RepositoryInfo) -> None:
        """Ensure the pr-label-check webhook is installed."""

        webhook = self._policy.webhook
        if not webhook.enabled:
            return

        try:
            urls = self._github.list_hook_urls(owner=repo.owner, name=repo.name)
        except GitHubAPIError as e:
            logger.error("Could not list hooks", extra={"repo": repo.full_name, "error": str(e)})
            return

        if webhook.url in urls:
            return

        logger.info("Creating webhook", extra={"repo": repo.full_name})
        try:
            self._github.create_hook(
                owner=repo.owner,
                name=repo.name,
                url=webhook.url,
                content_type=webhook.content_type,
                secret=webhook.secret,
                events=webhook.events,
            )
        except GitHubAPIError as e:
            logger.error("Could not create webhook", extra={"repo": repo.full_name, "error": str(e)})

    def check_labels(self, repo: RepositoryInfo) -> None:
        """Ensure the major/minor/patch labels exist."""

        try:
            existing = set(self._github.list_label_names(owner=repo.owner, name=repo.name))
        except GitHubAPIError as e:
            logger.error("Could not list labels", extra={"repo": repo.full_name, "error": str(e)})
            return

        for spec in self._policy.labels:
            if spec.name in existing:
                continue

            logger.info(
                "Didn't find label so creating it",
                extra={"repo": repo.full_name, "label": spec.name},
            )
            try:
                self._github.create_label(
                    owner=repo.owner,
                    name=repo.name,
                    label=spec.name,
                    color=spec.color,
                    description=spec.description,
                )
            except GitHubAPIError as e:
                logger.error(
                    "Could not create label",
                    extra={"repo": repo.full_name, "label": spec.name, "error": str(e)},
                )

    def check_teams(self, repo: RepositoryInfo) -> None:
        """Ensure each configured team is attached with exactly the configured permission.

        Grants are only ever added or re-issued; teams outside the policy are left alone.
        """

        try:
            teams = self._github.list_teams(owner=repo.owner, name=repo.name)
        except GitHubAPIError as e:
            logger.error("Could not list teams", extra={"repo": repo.full_name, "error": str(e)})
            return

        for grant in self._policy.teams:
            if any(t.id == grant.team_id and t.permission == grant.api_permission for t in teams):
                continue

            logger.info(
                "Didn't find team or it had the wrong permission, so granting it",
                extra={
                    "repo": repo.full_name,
                    "team": grant.team_name,
                    "permission": grant.api_permission,
                },
            )
            try:
                self._github.grant_team_permission(
                    owner=repo.owner,
                    name=repo.name,
                    team_id=grant.team_id,
                    permission=grant.api_permission,
                )
            except GitHubAPIError as e:
                logger.error(
                    "Could not grant team permission",
                    extra={"repo": repo.full_name, "team": grant.team_name, "error": str(e)},
                )

    def check_repo_settings(self, repo: RepositoryInfo) -> None:
        """Disable wiki and issues, and allow squash merging only."""

        if not (
            repo.has_wiki or repo.has_issues or repo.allow_merge_commit or repo.allow_rebase_merge
        ):
            return

        logger.info("Repository settings are incorrect, so updating them", extra={"repo": repo.full_name})
        try:
            self._github.edit_repository_settings(
                owner=repo.owner,
                name=repo.name,
                has_wiki=False,
                has_issues=False,
                allow_merge_commit=False,
                allow_rebase_merge=False,
                allow_squash_merge=True,
            )
        except GitHubAPIError as e:
            logger.error(
                "Could not update repository settings",
                extra={"repo": repo.full_name, "error": str(e)},
            )

    def check_releases(self, repo: RepositoryInfo) -> None:
        """Ensure a base release exists for the semver release automation to build on."""

        try:
            tags = self._github.list_release_tags(owner=repo.owner, name=repo.name)
        except GitHubAPIError as e:
            logger.error("Could not list releases", extra={"repo": repo.full_name, "error": str(e)})
            return

        if tags:
            return

        release = self._policy.release
        logger.info(
            "Didn't find any releases so creating a base one",
            extra={"repo": repo.full_name, "tag": release.tag},
        )
        try:
            self._github.create_release(
                owner=repo.owner,
                name=repo.name,
                tag=release.tag,
                title=release.title,
                body=release.body,
                target_commitish=release.target_commitish or repo.default_branch,
                draft=release.draft,
                prerelease=release.prerelease,
            )
        except GitHubAPIError as e:
            logger.error("Could not create release", extra={"repo": repo.full_name, "error": str(e)})

    def required_contexts(
        self, repo: RepositoryInfo, protection: BranchProtectionState | None
    ) -> tuple[bool, list[str]]:
        """Decide whether protection must be (re)written, and with which status check contexts.

        Repositories matching the additional-check substring are always written with the full
        context list. Their comparison counts contexts instead of comparing sets: a repository
        carrying the right number of contexts is only updated when one of the additional checks
        is missing from them.
        """

        policy = self._policy
        wants_additional = policy.wants_additional_checks(repo.name)
        if wants_additional:
            contexts = policy.full_status_checks()
        else:
            contexts = [policy.default_status_check]

        if protection is None:
            return True, contexts

        needs_update = False
        if protection.required_approving_review_count != policy.required_approving_review_count:
            needs_update = True
        if protection.strict is not True:
            needs_update = True

        existing = protection.contexts or []
        if policy.default_status_check not in existing:
            needs_update = True

        if wants_additional and (
            len(existing) != len(contexts)
            or any(check not in existing for check in policy.additional_status_checks)
        ):
            needs_update = True

        return needs_update, contexts

    def check_branch_protection(self, repo: RepositoryInfo) -> bool:
        """Protect the configured branch: one approving review plus passing status checks.

        Returns:
            Whether the branch is protected once the check finishes. The signing check relies
            on this, as required signatures can only be set on a protected branch.
        """

        branch = self._policy.branch_to_protect
        try:
            protection = self._github.get_branch_protection(
                owner=repo.owner, name=repo.name, branch=branch
            )
        except GitHubAPIError as e:
            logger.error(
                "Could not check branch protection",
                extra={"repo": repo.full_name, "branch": branch, "error": str(e)},
            )
            return False

        needs_update, contexts = self.required_contexts(repo, protection)
        if not needs_update:
            return True

        logger.info(
            "Branch protection isn't correct, so updating it",
            extra={"repo": repo.full_name, "branch": branch, "contexts": contexts},
        )
        try:
            self._github.update_branch_protection(
                owner=repo.owner,
                name=repo.name,
                branch=branch,
                contexts=contexts,
                required_approving_review_count=self._policy.required_approving_review_count,
            )
        except GitHubAPIError as e:
            logger.error(
                "Could not update branch protection",
                extra={"repo": repo.full_name, "branch": branch, "error": str(e)},
            )
            return protection is not None
        return True

    def check_signing_protection(self, repo: RepositoryInfo, *, branch_protected: bool) -> None:
        """Require signed commits on the protected branch.

        Args:
            repo: Repository to reconcile.
            branch_protected: Result of :meth:`check_branch_protection` for the same pass.
        """

        branch = self._policy.branch_to_protect
        if not branch_protected:
            logger.warning(
                "Branch is not protected, not checking signing protection",
                extra={"repo": repo.full_name, "branch": branch},
            )
            return

        try:
            enabled = self._github.get_required_signatures(
                owner=repo.owner, name=repo.name, branch=branch
            )
        except GitHubAPIError as e:
            logger.error(
                "Could not check signing branch protection",
                extra={"repo": repo.full_name, "branch": branch, "error": str(e)},
            )
            return

        if enabled:
            return

        logger.info(
            "Signing protection is disabled, so enabling it",
            extra={"repo": repo.full_name, "branch": branch},
        )
        try:
            self._github.require_signatures(owner=repo.owner, name=repo.name, branch=branch)
        except GitHubAPIError as e:
            logger.error(
                "Could not enable signing protection",
                extra={"repo": repo.full_name, "branch": branch, "error": str(e)},
            )
