"""svcgen: scaffold and safely re-merge service-layer code from service descriptors."""

__version__ = "0.1.0"
