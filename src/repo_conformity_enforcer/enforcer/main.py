"""CLI entrypoint for the conformity enforcer.

Enumerates the organisation's repositories and reconciles each one against the compiled-in
policy. API failures are logged and skipped; only a configuration error (missing token) or an
unexpected crash produce a non-zero exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from repo_conformity_enforcer import __version__
from repo_conformity_enforcer.enforcer.config import EnforcerSettings, default_policy
from repo_conformity_enforcer.enforcer.github.client import GitHubClient
from repo_conformity_enforcer.enforcer.logging import configure_logging
from repo_conformity_enforcer.enforcer.reconciler import RepositoryReconciler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-conformity-enforcer",
        description=(
            "Apply webhooks, labels, team permissions, settings, a baseline release, branch "
            "protection and signing enforcement to every repository of an organisation"
        ),
    )
    parser.add_argument(
        "--version", action="version", version=f"repo-conformity-enforcer {__version__}"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    parser.parse_args(argv)

    try:
        settings = EnforcerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment or .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    policy = default_policy(settings)

    try:
        github = GitHubClient(token=settings.github_token, base_url=settings.github_base_url)
        try:
            reconciler = RepositoryReconciler(github=github, policy=policy)
            processed = reconciler.reconcile_organisation()
            logger.info(
                "Finished processing repositories",
                extra={"organisation": policy.organisation, "count": len(processed)},
            )
            return 0
        finally:
            github.close()

    except Exception:
        logger.exception("Run failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
