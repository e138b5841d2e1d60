"""Rich styles for the vps-cleaner CLI.

The palette is fixed. Style names are referenced from Rich markup
(``[size]``, ``[warning]``) and table styles across the CLI.
"""

from rich.theme import Theme

STYLES: dict[str, str] = {
    "muted": "#b2bec3",
    "border": "#29526d",
    "bold_header": "bold #69B9A1",
    "success": "#03b971",
    "warning": "#f5b332",
    "error": "bold #f53263",
    "info": "#0ec1c8",
    "size": "bold #0ec1c8",
    "dry_run": "bold #faf870",
}

_cached_theme: Theme | None = None


def get_theme() -> Theme:
    """Get the shared Rich theme."""
    global _cached_theme
    if _cached_theme is None:
        _cached_theme = Theme(STYLES)
    return _cached_theme
