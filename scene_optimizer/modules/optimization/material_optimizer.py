"""
#WHERE
    Fifth and sixth passes of pipeline.OptimizationPipeline.

#WHAT
    MaterialMerger: materials flagged as high complexity are first moved to a
    cheaper shader (``simplify_shader``) that keeps only the properties and
    keywords it reads. Then near-identical materials (same shader, shared
    textures and property values) are clustered and every node is
    repointed at the group's anchor material. Absorbed materials, and
    textures no material references any more, leave the registries.

    TextureOptimizer: halves textures larger than ``max_texture_size`` until
    they fit. If total texture memory is still above the budget, uncompressed
    textures are switched to block compression.

#INPUT
    SceneGraph, similarity threshold, shader complexity target, size and
    memory budgets.

#OUTPUT
    (new SceneGraph, OptimizationResult).
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Dict, List, Tuple

from scene_optimizer.shared.constants import (
    COMPRESSED_TEXTURE_FORMAT,
    DEFAULT_MATERIAL_THRESHOLD,
    DEFAULT_MAX_TEXTURE_SIZE,
    DEFAULT_SHADER_COMPLEXITY,
    DEFAULT_TARGET_MEMORY_MB,
    LITE_SHADER,
    LITE_SHADER_MAX_COMPLEXITY,
    SHADER_KEYWORDS,
    SHADER_PROPERTIES,
    SIMPLE_SHADER,
    SIMPLE_SHADER_MAX_COMPLEXITY,
)
from scene_optimizer.shared.errors import InvalidArgumentError, require
from scene_optimizer.modules.analysis.material_analyzer import MaterialAnalyzer, cluster_materials
from scene_optimizer.modules.scene_graph import Material, SceneGraph, Texture
from .models import OptimizationResult

log = logging.getLogger(__name__)

MB = 1024 * 1024
_BLOCK_FORMATS = {"BC1", "BC3", "BC7"}


def _check_complexity(target_complexity: float) -> None:
    if not 0.0 <= target_complexity <= 1.0:
        raise InvalidArgumentError(f"shader complexity must be in [0, 1], got {target_complexity}")


def simplified_shader(shader: str, target_complexity: float) -> str:
    _check_complexity(target_complexity)
    if target_complexity < SIMPLE_SHADER_MAX_COMPLEXITY:
        return SIMPLE_SHADER
    if target_complexity < LITE_SHADER_MAX_COMPLEXITY:
        return LITE_SHADER
    return shader


def simplify_shader(material: Material, target_complexity: float) -> Material:
    """Copy of *material* on the shader picked for *target_complexity*.

    Only the properties and keywords that shader reads survive. When the
    target keeps the current shader, *material* itself is returned.
    """
    require(material, "material")
    shader = simplified_shader(material.shader, target_complexity)
    if shader == material.shader:
        return material
    keep_props, keep_keywords = SHADER_PROPERTIES[shader], SHADER_KEYWORDS[shader]
    return Material(
        name=material.name,
        shader=shader,
        properties={k: v for k, v in material.properties.items() if k in keep_props},
        keywords=frozenset(k for k in material.keywords if k in keep_keywords),
    )


class MaterialMerger:

    def __init__(self, similarity_threshold: float = DEFAULT_MATERIAL_THRESHOLD,
                 shader_complexity: float = DEFAULT_SHADER_COMPLEXITY) -> None:
        if not 0.0 <= similarity_threshold <= 1.0:
            raise InvalidArgumentError(
                f"material similarity threshold must be in [0, 1], got {similarity_threshold}"
            )
        _check_complexity(shader_complexity)
        self.similarity_threshold = similarity_threshold
        self.shader_complexity = shader_complexity

    def _simplify_shaders(self, graph: SceneGraph) -> List[str]:
        analyzer = MaterialAnalyzer()
        simplified = []
        for name, material in list(graph.materials.items()):
            if not analyzer.analyze_material(graph, material).is_high_complexity:
                continue
            lighter = simplify_shader(material, self.shader_complexity)
            if lighter is not material:
                graph.materials[name] = lighter
                simplified.append(name)
        return simplified

    def optimize(self, graph: SceneGraph) -> Tuple[SceneGraph, OptimizationResult]:
        require(graph, "graph")
        t0 = time.perf_counter()
        out = graph.copy()
        result = OptimizationResult("materials", nodes_before=graph.node_count())

        simplified = self._simplify_shaders(out)
        groups = cluster_materials(list(out.materials.values()), self.similarity_threshold)
        replaced: Dict[str, str] = {m.name: g[0].name for g in groups for m in g[1:]}
        repointed = 0
        for handle in out.handles():
            node = out.nodes[handle]
            if node.material in replaced:
                node.material = replaced[node.material]
                repointed += 1

        for name in replaced:
            del out.materials[name]
        # textures nothing referenced to begin with stay put
        used_before = {t for m in graph.materials.values() for t in m.texture_names()}
        still_used = {t for m in out.materials.values() for t in m.texture_names()}
        orphaned = {t for t in used_before - still_used if t in out.textures}
        for name in orphaned:
            del out.textures[name]

        result.nodes_after = out.node_count()
        result.changes = len(replaced) + len(simplified)
        result.details = {
            "merged": replaced,
            "shaders_simplified": simplified,
            "nodes_repointed": repointed,
            "textures_removed": sorted(orphaned),
        }
        result.elapsed_ms = (time.perf_counter() - t0) * 1000
        log.info("[materials] %s: %d shaders simplified, %d materials merged into %d, %d nodes repointed",
                 graph.name, len(simplified), len(replaced), len(groups), repointed)
        return out, result


class TextureOptimizer:

    def __init__(self, max_texture_size: int = DEFAULT_MAX_TEXTURE_SIZE,
                 target_memory_mb: int = DEFAULT_TARGET_MEMORY_MB) -> None:
        if max_texture_size <= 0:
            raise InvalidArgumentError(f"max texture size must be > 0, got {max_texture_size}")
        if target_memory_mb <= 0:
            raise InvalidArgumentError(f"target memory must be > 0 MB, got {target_memory_mb}")
        self.max_texture_size = max_texture_size
        self.target_memory_mb = target_memory_mb

    def _downsize(self, texture: Texture) -> Texture:
        width, height = texture.width, texture.height
        while max(width, height) > self.max_texture_size:
            width, height = max(width // 2, 1), max(height // 2, 1)
        if (width, height) == (texture.width, texture.height):
            return texture
        return dataclasses.replace(texture, width=width, height=height)

    def optimize(self, graph: SceneGraph) -> Tuple[SceneGraph, OptimizationResult]:
        require(graph, "graph")
        t0 = time.perf_counter()
        out = graph.copy()
        result = OptimizationResult("textures", nodes_before=graph.node_count())
        bytes_before = sum(t.byte_size for t in out.textures.values())

        resized = [name for name, tex in out.textures.items() if self._downsize(tex) is not tex]
        for name in resized:
            out.textures[name] = self._downsize(out.textures[name])

        compressed = []
        if sum(t.byte_size for t in out.textures.values()) > self.target_memory_mb * MB:
            for name, tex in list(out.textures.items()):
                if tex.format.upper() not in _BLOCK_FORMATS:
                    out.textures[name] = dataclasses.replace(tex, format=COMPRESSED_TEXTURE_FORMAT)
                    compressed.append(name)

        bytes_after = sum(t.byte_size for t in out.textures.values())
        if bytes_after > self.target_memory_mb * MB:
            log.warning("[textures] %s: %.1f MB still above the %d MB budget",
                        graph.name, bytes_after / MB, self.target_memory_mb)

        result.nodes_after = out.node_count()
        result.changes = len(resized) + len(compressed)
        result.details = {
            "resized": resized,
            "compressed": compressed,
            "bytes_before": bytes_before,
            "bytes_after": bytes_after,
        }
        result.elapsed_ms = (time.perf_counter() - t0) * 1000
        log.info("[textures] %s: %d resized, %d compressed, %.1f MB -> %.1f MB",
                 graph.name, len(resized), len(compressed), bytes_before / MB, bytes_after / MB)
        return out, result
