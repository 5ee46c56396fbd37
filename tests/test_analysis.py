"""Tests for the hierarchy / mesh / material analyzers and the scoring engine."""

import unittest

import numpy as np
import pytest

from scene_optimizer.modules.analysis import (
    HierarchyAnalyzer,
    HierarchyMetrics,
    MaterialAnalyzer,
    MaterialMetrics,
    MeshAnalyzer,
    MeshMetrics,
    Priority,
    SceneAnalyzer,
    build_recommendations,
    material_similarity,
    optimization_score,
    texture_type,
)
from scene_optimizer.modules.scene_graph import (
    Material,
    Mesh,
    Node,
    ScalarValue,
    SceneGraph,
    Texture,
    TextureRef,
    VectorValue,
    build_demo_scene,
    make_cube,
    make_grid,
)
from scene_optimizer.shared.errors import InvariantViolationError, NullReferenceError
from scene_optimizer.shared.transforms import translation


def quad(uvs=None):
    vertices = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0)]
    return Mesh("Quad", vertices, [0, 1, 2, 1, 3, 2], uvs=uvs)


# ── Hierarchy ────────────────────────────────────────────────────────────

class TestHierarchyAnalyzer(unittest.TestCase):

    def setUp(self):
        g = SceneGraph("H")
        g.add_mesh(make_cube("Box"))
        g.add_material(Material("Mat"))
        self.root = g.add_node(Node("Root"))
        self.a = g.add_node(Node("A"), self.root)
        self.b = g.add_node(Node("B", mesh="Box", material="Mat"), self.a)
        self.empty = g.add_node(Node("Empty"), self.root)
        self.graph = g
        self.metrics = HierarchyAnalyzer().analyze(g)

    def test_counts(self):
        m = self.metrics
        self.assertEqual(m.total_nodes, 4)
        self.assertEqual(m.leaf_nodes, 2)
        self.assertEqual(m.intermediate_nodes, 2)
        self.assertEqual(m.max_depth, 2)
        self.assertAlmostEqual(m.average_children, 1.5)
        self.assertEqual(m.empty_nodes, 3)

    def test_depths_and_children(self):
        self.assertEqual(self.metrics.node_depths[self.root], 0)
        self.assertEqual(self.metrics.node_depths[self.b], 2)
        self.assertEqual(self.metrics.child_counts[self.root], 2)

    def test_type_histogram(self):
        self.assertEqual(self.metrics.type_histogram, {"Transform": 3, "Mesh": 1})

    def test_removable_and_mergeable(self):
        self.assertEqual(self.metrics.removable_nodes, [self.empty])
        self.assertEqual(self.metrics.mergeable_nodes, [self.a])

    def test_instanceable_siblings(self):
        g = self.graph
        c = g.add_node(Node("C", translation(0.05, 0, 0), mesh="Box", material="Mat"), self.a)
        g.add_node(Node("Far", translation(5, 0, 0), mesh="Box", material="Mat"), self.a)
        metrics = HierarchyAnalyzer().analyze(g)
        self.assertEqual(metrics.instanceable_groups, [[self.b, c]])

    def test_transform_breakdown(self):
        g = self.graph
        g.nodes[self.a].transform = translation(1, 0, 0)
        metrics = HierarchyAnalyzer().analyze(g)
        self.assertEqual(metrics.non_identity_transforms, 1)
        self.assertEqual(metrics.rotated_transforms, 0)

    def test_empty_graph_gives_zero_metrics(self):
        self.assertEqual(HierarchyAnalyzer().analyze(SceneGraph("Nothing")), HierarchyMetrics())

    def test_none_graph_raises(self):
        with self.assertRaises(NullReferenceError):
            HierarchyAnalyzer().analyze(None)


# ── Meshes ───────────────────────────────────────────────────────────────

class TestMeshAnalyzer:

    def setup_method(self):
        self.analyzer = MeshAnalyzer()

    def test_overlapping_uvs_detected(self):
        result = self.analyzer.analyze_mesh(quad(uvs=[(0, 0), (0, 0), (0, 1), (1, 1)]))
        assert result.polygon_count == 2
        assert result.vertex_count == 4
        assert result.has_overlapping_uvs

    def test_density_uses_bounding_box_area(self):
        result = self.analyzer.analyze_mesh(quad())
        assert result.surface_area == pytest.approx(2.0)
        assert result.vertex_density == pytest.approx(2.0)

    def test_full_square_uvs_have_seams_and_bad_layout(self):
        result = self.analyzer.analyze_mesh(quad(uvs=[(0, 0), (1, 0), (0, 1), (1, 1)]))
        assert not result.has_overlapping_uvs
        assert result.has_uv_seams
        assert not result.has_proper_uv_layout   # area 1.0 is above 0.9
        assert result.uv_bounds == (0.0, 0.0, 1.0, 1.0)

    def test_grid_has_clean_uvs(self):
        result = self.analyzer.analyze_mesh(make_grid("G", 10, 10))
        assert not result.has_overlapping_uvs
        assert not result.has_uv_seams
        assert result.has_proper_uv_layout
        assert result.issues == []

    def test_missing_uvs_reported(self):
        result = self.analyzer.analyze_mesh(quad())
        assert not result.has_proper_uv_layout
        assert any("no UV" in issue for issue in result.issues)

    def test_high_poly_flag(self):
        result = self.analyzer.analyze_mesh(make_grid("Big", 250, 250))
        assert result.polygon_count == 125_000
        assert result.is_high_poly

    def test_scene_aggregation_skips_zero_area(self):
        g = SceneGraph("M")
        g.add_mesh(quad())
        g.add_mesh(Mesh("Point", [(0, 0, 0)], []))
        metrics = self.analyzer.analyze(g)
        assert metrics.mesh_count == 2
        assert metrics.total_vertices == 5
        assert metrics.total_polygons == 2
        assert metrics.average_density == pytest.approx(2.0)


# ── Materials ────────────────────────────────────────────────────────────

def pbr(name, textures=("rock_albedo", "rock_normal"), metallic=0.0, shader="Standard", keywords=()):
    props = {f"_Tex{i}": TextureRef(t) for i, t in enumerate(textures)}
    props["_Metallic"] = ScalarValue(metallic)
    props["_Color"] = VectorValue((1.0, 1.0, 1.0, 1.0))
    props["_Glossiness"] = ScalarValue(0.5)
    return Material(name, shader, props, frozenset(keywords))


class TestMaterialSimilarity:

    @pytest.mark.parametrize("name,expected", [
        ("Rock_Albedo", "Albedo"),
        ("rock_NORMAL", "Normal"),
        ("detail_normal_map", "DetailNormal"),
        ("detail_mask", "DetailMask"),
        ("lightmap", "Custom"),
    ])
    def test_texture_type(self, name, expected):
        assert texture_type(name) == expected

    def test_identical_materials(self):
        assert material_similarity(pbr("A"), pbr("B")) == pytest.approx(1.0)

    def test_different_shader(self):
        assert material_similarity(pbr("A"), pbr("B", shader="Unlit")) == 0.0

    def test_one_property_differs(self):
        # textures match fully (0.6), two of three properties match (0.4 * 2/3)
        assert material_similarity(pbr("A"), pbr("B", metallic=1.0)) == pytest.approx(0.6 + 0.4 * 2 / 3)

    def test_disjoint_textures(self):
        sim = material_similarity(pbr("A"), pbr("B", textures=("wood_albedo", "wood_normal")))
        assert sim == pytest.approx(0.4)


class TestMaterialAnalyzer:

    def setup_method(self):
        g = SceneGraph("Mat")
        for tex in ("rock_albedo", "rock_normal", "wood_albedo", "wood_normal"):
            g.add_texture(Texture(tex, 2048, 2048))
        g.add_material(pbr("Rock"))
        g.add_material(pbr("RockCopy"))
        g.add_material(pbr("Wood", textures=("wood_albedo", "wood_normal")))
        self.graph = g

    def test_redundant_group(self):
        metrics = MaterialAnalyzer().analyze(self.graph)
        assert len(metrics.redundant_groups) == 1
        group = metrics.redundant_groups[0]
        assert group.group_name == "RedundantGroup_Rock"
        assert group.materials == ["Rock", "RockCopy"]
        assert group.suggested_reference == "Rock"

    def test_scene_texture_metrics(self):
        metrics = MaterialAnalyzer().analyze(self.graph)
        assert metrics.material_count == 3
        assert metrics.unique_texture_count == 4
        assert metrics.high_res_texture_count == 4
        assert metrics.texture_memory_bytes == 4 * 2048 * 2048 * 4

    def test_per_material_counts(self):
        rock = MaterialAnalyzer().analyze(self.graph).per_material["Rock"]
        assert rock.texture_count == 2
        assert rock.sampler_count == 2
        assert rock.property_count == 3
        assert rock.texture_types == {"Albedo": 1, "Normal": 1}
        assert not rock.has_excessive_textures

    def test_excessive_textures_and_complexity(self):
        names = [f"layer{i}" for i in range(9)]
        for n in names:
            self.graph.add_texture(Texture(n, 64, 64))
        heavy = pbr("Heavy", textures=names, keywords=[f"KW_{i}" for i in range(6)])
        analysis = MaterialAnalyzer().analyze_material(self.graph, heavy)
        assert analysis.has_excessive_textures
        assert analysis.is_high_complexity
        assert analysis.variant_count == 64
        assert analysis.shader_complexity == 3 + 9 + 6


# ── Scoring / recommendations ────────────────────────────────────────────

class TestScoring:

    def test_zero_and_cap(self):
        assert optimization_score(0, 0, 0, 0, 0) == 0
        assert optimization_score(10**7, 50, 1000, 1000, 10**10) == 100

    def test_thresholds_are_strict(self):
        assert optimization_score(50_000, 0, 0, 0, 0) == 0
        assert optimization_score(50_001, 0, 0, 0, 0) == 5
        assert optimization_score(1_000_001, 0, 0, 0, 0) == 20
        assert optimization_score(0, 11, 0, 0, 0) == 20

    def test_monotonic_in_each_metric(self):
        rng = np.random.default_rng(3)
        for _ in range(50):
            base = [int(rng.integers(0, 2_000_000)), int(rng.integers(0, 15)), int(rng.integers(0, 150)),
                    int(rng.integers(0, 150)), int(rng.integers(0, 2_000_000_000))]
            for i in range(5):
                bumped = list(base)
                bumped[i] = bumped[i] * 2 + 1
                assert optimization_score(*bumped) >= optimization_score(*base)
                assert optimization_score(*bumped) <= 100

    def test_no_recommendations_for_small_scene(self):
        assert build_recommendations(HierarchyMetrics(), MeshMetrics(), MaterialMetrics()) == []

    def test_recommendations_ranked(self):
        recs = build_recommendations(
            HierarchyMetrics(max_depth=12),
            MeshMetrics(total_polygons=2_000_000, memory_bytes=2 * 1024 ** 3),
            MaterialMetrics(material_count=5),
        )
        assert [r.title for r in recs] == ["High Memory Usage", "High Polygon Count", "Deep Hierarchy"]
        assert recs[0].priority is Priority.CRITICAL

    def test_elevated_polygons(self):
        recs = build_recommendations(HierarchyMetrics(), MeshMetrics(total_polygons=600_000),
                                     MaterialMetrics())
        assert [(r.title, r.priority) for r in recs] == [("Elevated Polygon Count", Priority.HIGH)]


class TestSceneAnalyzer:

    def test_demo_scene(self):
        graph = build_demo_scene(crate_rows=2, chain_depth=9, terrain_resolution=16)
        results = SceneAnalyzer().analyze(graph)
        assert results.scene_name == graph.name
        assert results.hierarchy.total_nodes == graph.node_count()
        assert results.meshes.mesh_count == len(graph.meshes)
        assert 0 <= results.optimization_score <= 100
        assert "Deep Hierarchy" in [r.title for r in results.recommendations]
        assert results.materials.redundant_groups[0].materials == ["Wood", "WoodCopy"]

    def test_none_graph(self):
        with pytest.raises(NullReferenceError):
            SceneAnalyzer().analyze(None)

    def test_cyclic_graph_fails_fast(self):
        graph = SceneGraph("Loop")
        graph.add_mesh(make_cube("Box"))
        root = graph.add_node(Node("Root"))
        a = graph.add_node(Node("A"), root)
        b = graph.add_node(Node("B", mesh="Box"), a)
        graph.nodes[b].children.append(a)
        with pytest.raises(InvariantViolationError):
            SceneAnalyzer().analyze(graph)
