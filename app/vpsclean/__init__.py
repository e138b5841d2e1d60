"""vps-cleaner - safe disk space reclamation for Linux hosts."""

__version__ = "1.0.0"
