"""Artifact rendering for svcgen."""

from .errors import RenderError
from .renderer import TEMPLATE_NAMES, ArtifactRenderer

__all__ = ["ArtifactRenderer", "RenderError", "TEMPLATE_NAMES"]
