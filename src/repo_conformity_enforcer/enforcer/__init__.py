"""Conformity enforcer components.

- Settings loaded from the environment or `.env`
- Console logging
- A PyGithub client wrapper
- The repository reconciler and its CLI
"""
