"""domainproof: custom-domain ownership verification service."""

__version__ = "1.0.0"
