"""Tests for the end-to-end optimization pipeline and its settings."""

import unittest

import numpy as np
import pytest

from scene_optimizer.modules.scene_graph import Node, SceneGraph, build_demo_scene, make_cube
from scene_optimizer.pipeline import OptimizationPipeline, OptimizationSettings
from scene_optimizer.shared.errors import InvalidArgumentError, InvariantViolationError, NullReferenceError


def all_off() -> OptimizationSettings:
    return OptimizationSettings(
        optimize_instances=False,
        flatten_hierarchy=False,
        optimize_transforms=False,
        optimize_meshes=False,
        optimize_materials=False,
        optimize_textures=False,
    )


def structure(graph):
    return [(d, graph.nodes[h].name, graph.nodes[h].mesh, graph.nodes[h].material)
            for h, d in graph.walk()]


class TestOptimizationSettings(unittest.TestCase):

    def test_defaults_valid(self):
        OptimizationSettings().validate()

    def test_enabled_passes_order(self):
        s = OptimizationSettings(flatten_hierarchy=False, optimize_textures=False)
        self.assertEqual(s.enabled_passes, ["instances", "transforms", "meshes", "materials"])

    def test_invalid_values(self):
        for kwargs in ({"instance_similarity_threshold": 1.5}, {"max_flatten_depth": -1},
                       {"target_polygon_count": 0}, {"lod_levels": 0}, {"shader_complexity": 1.5}):
            with self.assertRaises(InvalidArgumentError):
                OptimizationSettings(**kwargs).validate()

    def test_dict_round_trip_ignores_unknown_keys(self):
        data = OptimizationSettings(lod_levels=5, flatten_hierarchy=False).to_dict()
        data["legacy_option"] = True
        restored = OptimizationSettings.from_dict(data)
        self.assertEqual(restored.lod_levels, 5)
        self.assertFalse(restored.flatten_hierarchy)


class TestOptimizationPipeline:

    def setup_method(self):
        self.graph = build_demo_scene(crate_rows=3, chain_depth=6, terrain_resolution=16)

    def test_all_toggles_off_is_isomorphic(self):
        result = OptimizationPipeline().run(self.graph, all_off())
        assert result.graph is not self.graph
        assert result.passes == []
        assert structure(result.graph) == structure(self.graph)
        for (h1, _), (h2, _) in zip(self.graph.walk(), result.graph.walk()):
            np.testing.assert_array_equal(self.graph.nodes[h1].transform, result.graph.nodes[h2].transform)

    def test_default_run(self):
        before = structure(self.graph)
        result = OptimizationPipeline().run(self.graph)
        assert [p.pass_name for p in result.passes] == [
            "instances", "flatten", "transforms", "meshes", "materials", "textures"]
        assert structure(self.graph) == before
        assert result.after.node_count < result.before.node_count
        assert result.after.estimated_draw_calls < result.before.estimated_draw_calls
        assert result.after.material_count == result.before.material_count - 1
        result.graph.validate()

    def test_mesh_nodes_within_flatten_depth(self):
        settings = OptimizationSettings(max_flatten_depth=2)
        result = OptimizationPipeline(settings).run(self.graph)
        depths = [d for h, d in result.graph.walk() if result.graph.nodes[h].mesh is not None]
        assert max(depths) <= 2

    def test_lod_chains_registered(self):
        settings = OptimizationSettings(lod_levels=3, target_polygon_count=100)
        result = OptimizationPipeline(settings).run(self.graph)
        chain = result.graph.lods["Terrain"]
        assert chain == ["Terrain_LOD1", "Terrain_LOD2"]
        counts = [result.graph.meshes[m].polygon_count for m in ["Terrain"] + chain]
        assert counts[0] <= 100
        assert counts == sorted(counts, reverse=True)

    def test_invalid_settings_rejected_before_work(self):
        with pytest.raises(InvalidArgumentError, match="max_flatten_depth"):
            OptimizationPipeline().run(self.graph, OptimizationSettings(max_flatten_depth=-2))

    def test_none_graph(self):
        with pytest.raises(NullReferenceError):
            OptimizationPipeline().run(None)

    def test_summary(self):
        summary = OptimizationPipeline().run(self.graph).summary()
        assert summary["scene"] == self.graph.name
        assert set(summary["passes"]) == {"instances", "flatten", "transforms", "meshes",
                                          "materials", "textures"}
        assert "within_draw_call_budget" in summary["after"]

    def test_cyclic_graph_rejected(self):
        graph = SceneGraph("Loop")
        graph.add_mesh(make_cube("Box"))
        root = graph.add_node(Node("Root"))
        a = graph.add_node(Node("A"), root)
        b = graph.add_node(Node("B", mesh="Box"), a)
        graph.nodes[b].children.append(a)
        with pytest.raises(InvariantViolationError):
            OptimizationPipeline().run(graph)
        with pytest.raises(InvariantViolationError):
            OptimizationPipeline().run(graph, all_off())
