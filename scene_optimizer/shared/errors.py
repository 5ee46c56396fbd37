"""Exception taxonomy shared by every stage.

Each error also derives from the closest builtin so callers that only know
about ``ValueError`` / ``OSError`` still catch it.
"""

from __future__ import annotations


class SceneOptimizerError(Exception):
    """Base class for all errors raised by the package."""


class InvalidArgumentError(SceneOptimizerError, ValueError):
    """An argument is outside its documented range."""


class NullReferenceError(SceneOptimizerError, TypeError):
    """A required argument was ``None``."""


class SceneNotFoundError(SceneOptimizerError, FileNotFoundError):
    """A scene supplier has nothing at the requested path."""


class SceneIOError(SceneOptimizerError, OSError):
    """Import or export of a scene failed."""


class InvariantViolationError(SceneOptimizerError, RuntimeError):
    """A scene graph or mesh is structurally broken."""


def require(value, name: str):
    """Raise :class:`NullReferenceError` when *value* is ``None``, else return it."""
    if value is None:
        raise NullReferenceError(f"{name} must not be None")
    return value
