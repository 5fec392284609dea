"""Local CA provisioning and OS trust-store sync for a Harbor registry."""

__version__ = "0.3.0"
