"""Runtime settings for the conformity enforcer.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Only the credential and a few operational knobs live here; the policy itself is compiled in
(see :mod:`repo_conformity_enforcer.policy`).
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_conformity_enforcer.policy import Policy, WebhookSpec


class EnforcerSettings(BaseSettings):
    """Settings for a conformity run.

    Environment variables:
    - GITHUB_TOKEN
    - GITHUB_BASE_URL   (optional)
    - LOG_LEVEL         (optional)
    - WEBHOOK_URL       (optional; the webhook check is skipped when empty)
    - WEBHOOK_SECRET    (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EnforcerSettings(_env_file=path_to_env)`.
    """

    # Empty default keeps `EnforcerSettings()` constructible; the validator below rejects it.
    github_token: str = Field(
        default="",
        validation_alias="GITHUB_TOKEN",
        description="GitHub token used for API authentication",
    )
    github_base_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_BASE_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    webhook_url: str = Field(
        default="",
        validation_alias="WEBHOOK_URL",
        description="Webhook added to every repository",
    )
    webhook_secret: str = Field(
        default="",
        validation_alias="WEBHOOK_SECRET",
        description="Shared secret of the webhook",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_github_auth(self) -> EnforcerSettings:
        if not self.github_token.strip():
            raise ValueError("The ENV variable GITHUB_TOKEN is not set.")
        return self


def default_policy(settings: EnforcerSettings) -> Policy:
    """Return the compiled-in policy with the webhook taken from ``settings``."""

    return Policy(
        webhook=WebhookSpec(url=settings.webhook_url, secret=settings.webhook_secret),
    )
