"""Tests for the batch coordinator, scene stores and optimization profiles."""

import pytest

from scene_optimizer.modules.batch import (
    BatchCoordinator,
    BatchState,
    InMemoryProfileStore,
    InMemorySceneStore,
    OptimizationProfile,
    ProfileStore,
    SceneSink,
    SceneSupplier,
    optimized_output_path,
)
from scene_optimizer.modules.scene_graph import build_demo_scene
from scene_optimizer.pipeline import OptimizationSettings
from scene_optimizer.shared.errors import (
    InvalidArgumentError,
    NullReferenceError,
    SceneIOError,
    SceneNotFoundError,
)


def small_scene(name):
    return build_demo_scene(name, crate_rows=1, chain_depth=2, terrain_resolution=4)


class CountingStore(InMemorySceneStore):
    """Scene store that records imports and can fail exports for chosen paths."""

    def __init__(self, scenes, failing_exports=()):
        super().__init__(scenes)
        self.imports = []
        self.failing_exports = set(failing_exports)

    def import_scene(self, path):
        self.imports.append(path)
        return super().import_scene(path)

    def export_scene(self, path, graph):
        if path in self.failing_exports:
            raise SceneIOError(f"disk full writing {path}")
        super().export_scene(path, graph)


class Recorder:

    def __init__(self):
        self.progress = []
        self.items = []
        self.done = 0
        self.errors = []

    def hooks(self):
        return dict(
            on_progress=self.progress.append,
            on_item_done=self.items.append,
            on_batch_done=self._done,
            on_batch_error=self.errors.append,
        )

    def _done(self):
        self.done += 1


@pytest.fixture
def store():
    return CountingStore({"scenes/a.usd": small_scene("a"), "scenes/c.usd": small_scene("c")})


class TestOutputPath:

    def test_optimized_folder_and_suffix(self):
        assert optimized_output_path("levels/town/scene.usd") == "levels/town/Optimized/scene_optimized.usd"

    def test_bare_name(self):
        assert optimized_output_path("scene.usda") == "Optimized/scene_optimized.usda"


class TestBatchCoordinator:

    def test_failed_import_is_isolated(self, store):
        rec = Recorder()
        coordinator = BatchCoordinator(store, store, **rec.hooks())
        report = coordinator.run(["scenes/a.usd", "scenes/b.usd", "scenes/c.usd"], "Balanced")

        assert report.state is BatchState.COMPLETED
        assert coordinator.state is BatchState.COMPLETED
        assert report.succeeded == ["scenes/a.usd", "scenes/c.usd"]
        assert report.failed == ["scenes/b.usd"]
        assert "SceneNotFoundError" in report.items[1].error
        assert rec.progress == pytest.approx([1 / 3, 2 / 3, 1.0])
        assert rec.items == ["scenes/a.usd", "scenes/c.usd"]
        assert rec.done == 1
        assert coordinator.progress == 1.0
        assert "scenes/Optimized/a_optimized.usd" in store
        assert "scenes/Optimized/c_optimized.usd" in store

    def test_failed_export_is_isolated(self):
        store = CountingStore({"a.usd": small_scene("a"), "b.usd": small_scene("b")},
                              failing_exports={"Optimized/a_optimized.usd"})
        report = BatchCoordinator(store, store).run(["a.usd", "b.usd"], "Quality")
        assert report.failed == ["a.usd"]
        assert report.succeeded == ["b.usd"]
        assert report.progress == 1.0

    def test_original_scene_kept(self, store):
        before = store.import_scene("scenes/a.usd").node_count()
        BatchCoordinator(store, store).run(["scenes/a.usd"], "Performance")
        assert store.import_scene("scenes/a.usd").node_count() == before
        optimized = store.import_scene("scenes/Optimized/a_optimized.usd")
        assert optimized.node_count() < before

    def test_empty_list_fails_fast(self, store):
        rec = Recorder()
        coordinator = BatchCoordinator(store, store, **rec.hooks())
        with pytest.raises(InvalidArgumentError, match="no scenes"):
            coordinator.run([], "Balanced")
        assert store.imports == []
        assert len(rec.errors) == 1
        assert coordinator.state is BatchState.IDLE

    def test_none_profile_fails_fast(self, store):
        with pytest.raises(NullReferenceError):
            BatchCoordinator(store, store).run(["scenes/a.usd"], None)
        assert store.imports == []

    def test_invalid_profile_settings(self, store):
        profile = OptimizationProfile("Broken", settings=OptimizationSettings(lod_levels=0))
        with pytest.raises(InvalidArgumentError):
            BatchCoordinator(store, store).run(["scenes/a.usd"], profile)
        assert store.imports == []

    def test_unknown_profile_name(self, store):
        with pytest.raises(InvalidArgumentError, match="unknown profile"):
            BatchCoordinator(store, store).run(["scenes/a.usd"], "Ultra")

    def test_cancel_between_items(self, store):
        rec = Recorder()
        coordinator = BatchCoordinator(store, store, **rec.hooks())
        coordinator.on_item_done = lambda path: coordinator.cancel()
        report = coordinator.run(["scenes/a.usd", "scenes/c.usd"], "Balanced")

        assert report.state is BatchState.CANCELLED
        assert report.processed == 1
        assert store.imports == ["scenes/a.usd"]
        assert rec.done == 0
        assert rec.progress == [0.5]

    def test_raising_hook_leaves_coordinator_reusable(self, store):
        rec = Recorder()

        def boom(fraction):
            raise RuntimeError("progress widget gone")

        coordinator = BatchCoordinator(store, store, on_progress=boom, on_batch_error=rec.errors.append)
        with pytest.raises(RuntimeError, match="widget gone"):
            coordinator.run(["scenes/a.usd", "scenes/c.usd"], "Balanced")
        assert coordinator.state is BatchState.IDLE
        assert len(rec.errors) == 1
        assert isinstance(rec.errors[0], RuntimeError)

        coordinator.on_progress = rec.progress.append
        report = coordinator.run(["scenes/a.usd", "scenes/c.usd"], "Balanced")
        assert report.state is BatchState.COMPLETED
        assert rec.progress == [0.5, 1.0]

    def test_raising_done_hook_keeps_completed_state(self, store):
        rec = Recorder()

        def boom():
            raise RuntimeError("listener failed")

        coordinator = BatchCoordinator(store, store, on_batch_done=boom, on_batch_error=rec.errors.append)
        with pytest.raises(RuntimeError):
            coordinator.run(["scenes/a.usd"], "Balanced")
        assert coordinator.state is BatchState.COMPLETED
        assert len(rec.errors) == 1
        assert coordinator.run(["scenes/c.usd"], "Quality").succeeded == ["scenes/c.usd"]

    def test_can_run_again_after_cancel(self, store):
        coordinator = BatchCoordinator(store, store)
        coordinator.cancel()
        report = coordinator.run(["scenes/a.usd"], "Balanced")
        assert report.state is BatchState.COMPLETED


class TestProfileStore:

    def test_protocols(self):
        store = InMemorySceneStore()
        assert isinstance(store, SceneSupplier)
        assert isinstance(store, SceneSink)
        assert isinstance(InMemoryProfileStore(), ProfileStore)

    def test_seeded_presets(self):
        profiles = InMemoryProfileStore()
        assert profiles.names() == ["Performance", "Balanced", "Quality"]
        perf = profiles.load("Performance").settings
        assert (perf.lod_levels, perf.target_polygon_count, perf.max_flatten_depth) == (3, 5000, 2)
        quality = profiles.load("Quality").settings
        assert not quality.flatten_hierarchy
        assert not quality.optimize_meshes

    def test_load_returns_copy(self):
        profiles = InMemoryProfileStore()
        profiles.load("Balanced").settings.lod_levels = 9
        assert profiles.load("Balanced").settings.lod_levels == 2

    def test_save_and_delete(self):
        profiles = InMemoryProfileStore([])
        profiles.save(OptimizationProfile("Mobile", "phones", OptimizationSettings(lod_levels=4)))
        assert profiles.names() == ["Mobile"]
        assert profiles.load("Mobile").settings.lod_levels == 4
        profiles.delete("Mobile")
        assert profiles.names() == []
        with pytest.raises(InvalidArgumentError):
            profiles.delete("Mobile")

    def test_profile_dict_round_trip(self):
        profile = OptimizationProfile("P", "d", OptimizationSettings(target_polygon_count=1234))
        assert OptimizationProfile.from_dict(profile.to_dict()) == profile

    def test_missing_scene(self):
        with pytest.raises(SceneNotFoundError):
            InMemorySceneStore().import_scene("nowhere.usd")
