"""Cloud function wrapper around the decision engine."""

from function.handler import handle

__all__ = ["handle"]
