"""
#WHERE
    Called by scene_analyzer.SceneAnalyzer (fan-out worker); the similarity
    and clustering helpers are reused by optimization/material_optimizer.py.

#WHAT
    Per-material texture usage and shader complexity, plus greedy
    anchor-based detection of redundant (near-duplicate) materials.

#INPUT
    SceneGraph (read-only), similarity threshold.

#OUTPUT
    MaterialMetrics, material_similarity(), cluster_materials().
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Sequence

from scene_optimizer.shared.constants import (
    HIGH_RES_TEXTURE_SIZE,
    MAX_MATERIAL_TEXTURE_BYTES,
    MAX_SHADER_KEYWORDS,
    MAX_SHADER_PROPERTIES,
    MAX_SHADER_SAMPLERS,
    MAX_TEXTURES_PER_MATERIAL,
    PROPERTY_SIMILARITY_WEIGHT,
    REDUNDANCY_THRESHOLD,
    TEXTURE_SIMILARITY_WEIGHT,
)
from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.modules.scene_graph import Material, SceneGraph
from .models import MaterialAnalysis, MaterialMetrics, RedundantMaterialGroup

log = logging.getLogger(__name__)

# detail variants first so "detail_normal" is not read as a plain normal map
_DETAIL_TYPES = (("albedo", "DetailAlbedo"), ("normal", "DetailNormal"), ("mask", "DetailMask"))
_TEXTURE_TYPES = (
    ("albedo", "Albedo"),
    ("normal", "Normal"),
    ("metallic", "Metallic"),
    ("roughness", "Roughness"),
    ("occlusion", "Occlusion"),
    ("emission", "Emission"),
    ("height", "Height"),
)


def texture_type(name: str) -> str:
    lowered = name.lower()
    if "detail" in lowered:
        for needle, label in _DETAIL_TYPES:
            if needle in lowered:
                return label
    for needle, label in _TEXTURE_TYPES:
        if needle in lowered:
            return label
    return "Custom"


def _match_fraction(matches: int, a: int, b: int) -> float:
    denom = max(a, b)
    return 1.0 if denom == 0 else matches / denom


def material_similarity(a: Material, b: Material) -> float:
    """0.6 · texture match + 0.4 · property match; 0 when shaders differ.

    Texture match counts texture names present in both materials; property
    match counts non-texture properties with the same key and value. Each is
    divided by the larger of the two materials' counts.
    """
    if a.shader != b.shader:
        return 0.0
    tex_a, tex_b = set(a.texture_names()), set(b.texture_names())
    tex_sim = _match_fraction(len(tex_a & tex_b), len(tex_a), len(tex_b))

    props_a, props_b = a.value_properties, b.value_properties
    same = sum(1 for k, v in props_a.items() if k in props_b and props_b[k] == v)
    prop_sim = _match_fraction(same, len(props_a), len(props_b))
    return TEXTURE_SIMILARITY_WEIGHT * tex_sim + PROPERTY_SIMILARITY_WEIGHT * prop_sim


def cluster_materials(materials: Sequence[Material], threshold: float) -> List[List[Material]]:
    """Greedy anchor clustering in input order; only groups of two or more are returned.

    Each unprocessed material becomes an anchor and absorbs every later
    unprocessed material whose similarity to the anchor reaches *threshold*.
    Deterministic for a given order, not globally optimal.
    """
    if not 0.0 <= threshold <= 1.0:
        raise InvalidArgumentError(f"similarity threshold must be in [0, 1], got {threshold}")
    processed = set()
    groups: List[List[Material]] = []
    for i, anchor in enumerate(materials):
        if anchor.name in processed:
            continue
        group = [anchor]
        for other in materials[i + 1:]:
            if other.name in processed:
                continue
            if material_similarity(anchor, other) >= threshold:
                group.append(other)
                processed.add(other.name)
        if len(group) > 1:
            processed.add(anchor.name)
            groups.append(group)
    return groups


class MaterialAnalyzer:

    def __init__(self, redundancy_threshold: float = REDUNDANCY_THRESHOLD) -> None:
        self.redundancy_threshold = redundancy_threshold

    def _texture_memory(self, graph: SceneGraph, material: Material) -> int:
        return sum(graph.textures[t].byte_size for t in material.texture_names() if t in graph.textures)

    def analyze_material(self, graph: SceneGraph, material: Material) -> MaterialAnalysis:
        textures = material.texture_names()
        keywords = len(material.keywords)
        result = MaterialAnalysis(
            name=material.name,
            texture_count=len(textures),
            texture_types=dict(Counter(texture_type(t) for t in textures)),
            texture_memory_bytes=self._texture_memory(graph, material),
            property_count=len(material.value_properties),
            sampler_count=len(material.texture_properties),
            keyword_count=keywords,
            variant_count=2 ** keywords,
        )
        result.shader_complexity = result.property_count + result.sampler_count + keywords
        result.has_excessive_textures = (
            result.texture_count > MAX_TEXTURES_PER_MATERIAL
            or result.texture_memory_bytes > MAX_MATERIAL_TEXTURE_BYTES
        )
        result.is_high_complexity = (
            result.property_count > MAX_SHADER_PROPERTIES
            or result.sampler_count > MAX_SHADER_SAMPLERS
            or keywords > MAX_SHADER_KEYWORDS
        )
        if result.texture_count > MAX_TEXTURES_PER_MATERIAL:
            result.issues.append(f"uses {result.texture_count} textures")
        if result.texture_memory_bytes > MAX_MATERIAL_TEXTURE_BYTES:
            result.issues.append(f"texture memory {result.texture_memory_bytes / 1024 / 1024:.1f} MB")
        if keywords > MAX_SHADER_KEYWORDS:
            result.issues.append(f"{keywords} shader keywords ({result.variant_count} variants)")
        return result

    def redundant_groups(self, graph: SceneGraph) -> List[RedundantMaterialGroup]:
        out = []
        for group in cluster_materials(list(graph.materials.values()), self.redundancy_threshold):
            anchor = group[0]
            sims = [material_similarity(anchor, m) for m in group[1:]]
            out.append(RedundantMaterialGroup(
                group_name=f"RedundantGroup_{anchor.name}",
                materials=[m.name for m in group],
                similarity=min(sims),
                suggested_reference=anchor.name,
                potential_savings_bytes=self._absorbed_texture_memory(graph, anchor, group[1:]),
            ))
        return out

    def _absorbed_texture_memory(self, graph: SceneGraph, anchor: Material,
                                 absorbed: Sequence[Material]) -> int:
        keep = set(anchor.texture_names())
        freed = {t for m in absorbed for t in m.texture_names() if t not in keep}
        return sum(graph.textures[t].byte_size for t in freed if t in graph.textures)

    def analyze(self, graph: SceneGraph) -> MaterialMetrics:
        require(graph, "graph")
        per_material: Dict[str, MaterialAnalysis] = {
            name: self.analyze_material(graph, m) for name, m in graph.materials.items()
        }
        referenced = {t for m in graph.materials.values() for t in m.texture_names()}
        textures = [graph.textures[t] for t in referenced if t in graph.textures]
        metrics = MaterialMetrics(
            material_count=len(graph.materials),
            unique_texture_count=len(referenced),
            texture_memory_bytes=sum(t.byte_size for t in textures),
            high_res_texture_count=sum(1 for t in textures if t.max_side >= HIGH_RES_TEXTURE_SIZE),
            per_material=per_material,
            redundant_groups=self.redundant_groups(graph),
            high_complexity_materials=[n for n, a in per_material.items() if a.is_high_complexity],
        )
        log.debug("[materials] %s: %d materials, %d textures, %d redundant groups",
                  graph.name, metrics.material_count, metrics.unique_texture_count,
                  len(metrics.redundant_groups))
        return metrics
