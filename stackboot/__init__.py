"""stackboot — idempotent full-stack project bootstrapper."""

__version__ = "0.1.0"
