"""Allow running vps-cleaner with ``python -m vpsclean``."""

from vpsclean.cli.main import app

app()
