"""Desired-state entries for the plugin manifest."""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Dependency:
    """A plugin the provisioner keeps installed at ``min_version`` or newer.

    ``optional`` entries are only upgraded when already present, never
    installed from scratch.  ``mandatory`` entries are additionally re-enabled
    whenever the host reports them as disabled.
    """

    name: str
    min_version: str | None = None
    optional: bool = False
    mandatory: bool = False

    def __post_init__(self) -> None:
        name = (self.name or "").strip()
        if not name:
            raise ValueError("Dependency name must not be empty")
        object.__setattr__(self, "name", name)
        if self.min_version is not None:
            version = self.min_version.strip()
            object.__setattr__(self, "min_version", version or None)

    def as_mandatory(self) -> "Dependency":
        return replace(self, mandatory=True)

    def __str__(self) -> str:
        if self.min_version is None:
            return self.name
        return f"{self.name}@{self.min_version}"


def require(name: str, version: str | None = None) -> Dependency:
    """Return an entry that is installed when missing."""

    return Dependency(name, version, optional=False)


def optional(name: str, version: str | None = None) -> Dependency:
    """Return an entry that is only upgraded when already installed."""

    return Dependency(name, version, optional=True)


__all__ = ["Dependency", "optional", "require"]
