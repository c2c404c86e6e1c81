"""Domain model for the curated plugin manifest."""

from .dependency import Dependency, optional, require
from .install_modes import InstallMode, UnknownInstallModeError
from .versioning import compare_versions, is_older_than, normalize_version

__all__ = [
    "Dependency",
    "InstallMode",
    "UnknownInstallModeError",
    "compare_versions",
    "is_older_than",
    "normalize_version",
    "optional",
    "require",
]
