"""Rendering failures."""


class RenderError(RuntimeError):
    """Raised when a rendered artifact breaks the placeholder contract."""
