"""Package manager cache adapters.

Each supported package manager is described by a static adapter: the
binary that identifies it, the directories holding its download cache
and the commands that clean the cache or remove orphaned packages.
The first manager whose binary is on PATH is used.
"""

import logging
from dataclasses import dataclass

from vpsclean.utils.shell import command_exists

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PackageManagerAdapter:
    """Cache handling for one package manager.

    Attributes:
        name: Package manager name, also the binary looked up on PATH.
        cache_dirs: Directories holding downloaded package files.
        clean_cache: Argument list that empties the download cache.
        autoremove: Argument list or shell pipeline removing orphaned
            packages, None if the manager has no such command.
    """

    name: str
    cache_dirs: tuple[str, ...]
    clean_cache: tuple[str, ...]
    autoremove: tuple[str, ...] | str | None = None

    def is_available(self) -> bool:
        """Check if the package manager binary is installed."""
        return command_exists(self.name)


# Lookup order when several managers are installed (dnf before yum).
PACKAGE_MANAGERS: tuple[PackageManagerAdapter, ...] = (
    PackageManagerAdapter(
        name="apt-get",
        cache_dirs=("/var/cache/apt/archives",),
        clean_cache=("apt-get", "clean", "-y"),
        autoremove=("apt-get", "autoremove", "-y"),
    ),
    PackageManagerAdapter(
        name="dnf",
        cache_dirs=("/var/cache/dnf",),
        clean_cache=("dnf", "clean", "all"),
        autoremove=("dnf", "autoremove", "-y"),
    ),
    PackageManagerAdapter(
        name="yum",
        cache_dirs=("/var/cache/yum",),
        clean_cache=("yum", "clean", "all"),
        autoremove=("yum", "autoremove", "-y"),
    ),
    PackageManagerAdapter(
        name="pacman",
        cache_dirs=("/var/cache/pacman/pkg",),
        clean_cache=("pacman", "-Scc", "--noconfirm"),
        autoremove="pacman -Qdtq | pacman -Rns --noconfirm -",
    ),
    PackageManagerAdapter(
        name="apk",
        cache_dirs=("/var/cache/apk",),
        clean_cache=("apk", "cache", "clean"),
    ),
    PackageManagerAdapter(
        name="zypper",
        cache_dirs=("/var/cache/zypp",),
        clean_cache=("zypper", "clean", "--all"),
    ),
)


def find_package_manager() -> PackageManagerAdapter | None:
    """Return the adapter of the first installed package manager, or None."""
    for adapter in PACKAGE_MANAGERS:
        if adapter.is_available():
            logger.debug("Using package manager %s", adapter.name)
            return adapter
    logger.debug("No supported package manager found")
    return None


def get_package_manager(name: str) -> PackageManagerAdapter:
    """Look up an adapter by name.

    Raises:
        KeyError: If no adapter has that name.
    """
    for adapter in PACKAGE_MANAGERS:
        if adapter.name == name:
            return adapter
    raise KeyError(name)
