"""Permission domain types."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PermissionLevel(str, Enum):
    """The three independent permission flags."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


def normalize_feature_name(name: str) -> str:
    """Normalize a feature name the same way the catalog derives its keys."""
    return name.strip().lower().replace(" ", "_")


@dataclass(frozen=True)
class GrantSpec:
    """Requested flags for one feature when creating or replacing a role's grants."""

    feature_id: str
    read: bool = False
    write: bool = False
    admin: bool = False

    @property
    def is_empty(self) -> bool:
        """True when no flag is set (equivalent to no grant at all)."""
        return not (self.read or self.write or self.admin)


@dataclass(frozen=True)
class FeatureAccess:
    """Merged flags for one feature."""

    read: bool = False
    write: bool = False
    admin: bool = False

    def __or__(self, other: "FeatureAccess") -> "FeatureAccess":
        return FeatureAccess(
            read=self.read or other.read,
            write=self.write or other.write,
            admin=self.admin or other.admin,
        )

    @property
    def any(self) -> bool:
        return self.read or self.write or self.admin

    def has(self, level: PermissionLevel) -> bool:
        return bool(getattr(self, level.value))


@dataclass(frozen=True)
class AccessProfile:
    """Effective per-feature permissions of a user, keyed by feature name.

    Derived from the user's roles at token issuance and never persisted.
    """

    features: Mapping[str, FeatureAccess] = field(default_factory=dict)

    def __post_init__(self) -> None:
        index = {normalize_feature_name(name): access for name, access in self.features.items()}
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.features)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def get(self, name: str) -> FeatureAccess | None:
        """Look up a feature by name, ignoring case and space/underscore differences."""
        access = self._index.get(normalize_feature_name(name))  # type: ignore[attr-defined]
        if access is None or not access.any:
            return None
        return access

    def allows(self, name: str, level: PermissionLevel | None = None) -> bool:
        """Whether the profile holds ``name``; with ``level``, whether that flag is set."""
        access = self.get(name)
        if access is None:
            return False
        if level is None:
            return True
        return access.has(level)

    def to_claim(self) -> list[dict[str, Any]]:
        """Serialize for embedding in a token, sorted by feature name."""
        return [
            {"feature": name, "read": access.read, "write": access.write, "admin": access.admin}
            for name, access in sorted(self.features.items())
            if access.any
        ]

    @classmethod
    def from_claim(cls, items: Iterable[Mapping[str, Any]]) -> "AccessProfile":
        """Rebuild a profile from its token form, OR-merging duplicate entries."""
        features: dict[str, FeatureAccess] = {}
        for item in items:
            name = str(item["feature"])
            access = FeatureAccess(
                read=bool(item.get("read", False)),
                write=bool(item.get("write", False)),
                admin=bool(item.get("admin", False)),
            )
            features[name] = features[name] | access if name in features else access
        return cls(features=features)
