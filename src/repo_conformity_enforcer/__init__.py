"""Repository Conformity Enforcer.

Walks every repository of a GitHub organisation and applies a fixed policy:
- the pr-label-check webhook and its semver labels
- team permissions
- squash-only merging with wiki and issues disabled
- a baseline `v0.0.1` release
- branch protection and required commit signatures
"""

__version__ = "0.1.0"

from repo_conformity_enforcer.policy import Policy

__all__ = ["__version__", "Policy"]
