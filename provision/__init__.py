"""provision — declarative, idempotent environment provisioning."""

__version__ = "0.1.0"
