"""giki CLI — serve, inspect and search a git repository."""

from ._helpers import main  # noqa: F401 — entry point

# Import command modules to register Click commands with the main group.
from . import _basic, _web  # noqa: F401
