"""
Batch Processing
================
Optimize many scenes in sequence with per-scene failure isolation,
progress hooks and cooperative cancellation.

Example:
    from scene_optimizer.modules.batch import BatchCoordinator, InMemorySceneStore

    store = InMemorySceneStore({"levels/a.usd": graph_a, "levels/b.usd": graph_b})
    report = BatchCoordinator(store, store).run(store.paths(), "Balanced")
"""

from .io import InMemorySceneStore, SceneSink, SceneSupplier
from .profiles import InMemoryProfileStore, OptimizationProfile, ProfileStore, default_profiles
from .coordinator import (
    BatchCoordinator,
    BatchItemResult,
    BatchReport,
    BatchState,
    optimized_output_path,
)

__all__ = [
    "InMemorySceneStore",
    "SceneSink",
    "SceneSupplier",
    "InMemoryProfileStore",
    "OptimizationProfile",
    "ProfileStore",
    "default_profiles",
    "BatchCoordinator",
    "BatchItemResult",
    "BatchReport",
    "BatchState",
    "optimized_output_path",
]
