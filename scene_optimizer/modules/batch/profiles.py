"""
#WHERE
    Used by coordinator.BatchCoordinator, main.py (--profile) and tests.

#WHAT
    Named optimization profiles and the profile-store collaborator. The
    store is passed in explicitly; InMemoryProfileStore is seeded with the
    Performance / Balanced / Quality presets.

#INPUT / #OUTPUT
    OptimizationProfile records keyed by name.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Protocol, runtime_checkable

from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.pipeline import OptimizationSettings

log = logging.getLogger(__name__)


@dataclass
class OptimizationProfile:
    name: str
    description: str = ""
    settings: OptimizationSettings = field(default_factory=OptimizationSettings)

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "description": self.description, "settings": self.settings.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "OptimizationProfile":
        return cls(
            name=str(data["name"]),
            description=str(data.get("description", "")),
            settings=OptimizationSettings.from_dict(dict(data.get("settings", {}))),
        )


@runtime_checkable
class ProfileStore(Protocol):
    def names(self) -> List[str]: ...
    def load(self, name: str) -> OptimizationProfile: ...
    def save(self, profile: OptimizationProfile) -> None: ...
    def delete(self, name: str) -> None: ...


def default_profiles() -> List[OptimizationProfile]:
    return [
        OptimizationProfile(
            "Performance",
            "Aggressive reduction for real-time targets",
            OptimizationSettings(lod_levels=3, target_polygon_count=5000,
                                 instance_similarity_threshold=0.8,
                                 flatten_hierarchy=True, max_flatten_depth=2,
                                 optimize_meshes=True),
        ),
        OptimizationProfile(
            "Balanced",
            "Moderate reduction keeping most visual detail",
            OptimizationSettings(lod_levels=2, target_polygon_count=8000,
                                 instance_similarity_threshold=0.6,
                                 flatten_hierarchy=True, max_flatten_depth=3,
                                 optimize_meshes=True),
        ),
        OptimizationProfile(
            "Quality",
            "Light-touch cleanup, geometry left intact",
            OptimizationSettings(lod_levels=2, target_polygon_count=10000,
                                 instance_similarity_threshold=0.4,
                                 flatten_hierarchy=False, max_flatten_depth=4,
                                 optimize_meshes=False),
        ),
    ]


class InMemoryProfileStore:
    """Dictionary-backed ProfileStore. Loaded profiles are copies."""

    def __init__(self, profiles: List[OptimizationProfile] | None = None) -> None:
        self._profiles: Dict[str, OptimizationProfile] = {}
        for profile in default_profiles() if profiles is None else profiles:
            self.save(profile)

    def names(self) -> List[str]:
        return list(self._profiles)

    def load(self, name: str) -> OptimizationProfile:
        try:
            return copy.deepcopy(self._profiles[name])
        except KeyError:
            raise InvalidArgumentError(f"unknown profile {name!r}, have {self.names()}") from None

    def save(self, profile: OptimizationProfile) -> None:
        require(profile, "profile")
        if not profile.name:
            raise InvalidArgumentError("profile name must not be empty")
        profile.settings.validate()
        self._profiles[profile.name] = copy.deepcopy(profile)
        log.debug("[profiles] saved %s", profile.name)

    def delete(self, name: str) -> None:
        if self._profiles.pop(name, None) is None:
            raise InvalidArgumentError(f"unknown profile {name!r}")
