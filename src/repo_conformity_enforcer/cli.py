"""Console script entrypoint.

The implementation lives in `repo_conformity_enforcer.enforcer.main`.
"""

from __future__ import annotations

from repo_conformity_enforcer.enforcer.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
