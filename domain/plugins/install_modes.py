"""Install modes selecting which manifest the reconciler drives towards."""

from __future__ import annotations

from enum import Enum
from typing import Tuple

from .dependency import Dependency, optional, require


class UnknownInstallModeError(ValueError):
    """Raised when an install mode name does not match any known mode."""


# The license and support plugins lead every manifest so they are queued,
# and therefore installed, before anything that relies on them.
_PREAMBLE: Tuple[Dependency, ...] = (
    require("cloudbees-license", "4.0").as_mandatory(),
    require("cloudbees-support", "1.0").as_mandatory(),
)

_MINIMAL: Tuple[Dependency, ...] = _PREAMBLE + (
    require("credentials", "1.4"),
    require("cloudbees-folder", "3.6"),
    require("cloudbees-update-center-plugin", "4.2"),
)

_OPERATIONS_CENTER: Tuple[Dependency, ...] = _MINIMAL + (
    require("async-http-client", "1.7.8"),
    require("operations-center-client", "1.0"),
    require("operations-center-context", "1.0"),
    require("nectar-rbac", "3.8"),
    optional("free-license", "4.0"),
)

_FULL: Tuple[Dependency, ...] = _PREAMBLE + (
    require("active-directory", "1.33"),
    require("build-timeout", "1.11"),
    require("copyartifact", "1.27"),
    require("dashboard-view", "2.5"),
    require("parameterized-trigger", "2.17"),
    require("promoted-builds", "2.10"),
    require("translation", "1.10"),
    require("async-http-client", "1.7.8"),
    require("credentials", "1.4"),
    require("git", "1.3.0"),
    require("git-client", "1.0.6"),
    require("analysis-core", "1.49"),
    require("findbugs", "4.48"),
    require("mercurial", "1.45"),
    require("monitoring", "1.44.0"),
    require("build-view-column", "0.1"),
    require("warnings", "4.23"),
    require("infradna-backup", "3.5"),
    require("nectar-vmware", "3.10"),
    require("nectar-rbac", "3.8"),
    require("cloudbees-folder", "3.6"),
    require("cloudbees-folders-plus", "1.2"),
    require("wikitext", "3.2"),
    require("nectar-license", "4.0"),
    optional("free-license", "4.0"),
    require("cloudbees-template", "3.11"),
    require("skip-plugin", "3.4"),
    require("cloudbees-even-scheduler", "3.2"),
    require("cloudbees-update-center-plugin", "4.2"),
    require("cloudbees-secure-copy", "3.4"),
    require("cloudbees-wasted-minutes-tracker", "3.5"),
    require("git-validated-merge", "3.8"),
    require("cloudbees-jsync-archiver", "4.0"),
    require("cloudbees-ha"),
    require("cloudbees-label-throttling-plugin", "3.2"),
    require("cloudbees-plugin-usage", "1.0"),
    require("cloudbees-nodes-plus", "1.3"),
    require("cloudbees-aborted-builds", "1.1"),
    require("cloudbees-consolidated-build-view", "1.1"),
)


class InstallMode(Enum):
    """Named manifests; each member carries its ordered dependency tuple."""

    MINIMAL = ("minimal", _MINIMAL)
    OPERATIONS_CENTER = ("operations-center", _OPERATIONS_CENTER)
    FULL = ("full", _FULL)

    def __init__(self, label: str, dependencies: Tuple[Dependency, ...]) -> None:
        self.label = label
        self.dependencies = dependencies

    @classmethod
    def from_name(cls, name: str | None) -> "InstallMode":
        """Resolve ``name`` (label or member name, case-insensitive)."""

        if isinstance(name, str):
            lowered = name.strip().lower().replace("_", "-")
            for mode in cls:
                if lowered == mode.label:
                    return mode
        raise UnknownInstallModeError(f"Unknown install mode: {name!r}")

    def names(self) -> tuple[str, ...]:
        return tuple(dependency.name for dependency in self.dependencies)


__all__ = ["InstallMode", "UnknownInstallModeError"]
