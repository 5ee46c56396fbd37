"""
#WHERE
    Created by the demo builders, scene suppliers and tests; read by the
    analyzers and rewritten (on a copy) by every optimization pass.

#WHAT
    Arena-backed scene tree. Nodes live in ``nodes`` keyed by an integer
    handle; a node lists its children by handle and knows its parent handle.
    Meshes, materials and textures are registries keyed by name and nodes
    refer to them by name.

#INPUT
    Nodes and registry entries added through ``add_node`` / ``add_mesh`` ...

#OUTPUT
    SceneGraph with traversal, copy, structural edit and validation helpers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from scene_optimizer.shared.errors import InvalidArgumentError, InvariantViolationError
from .models import Material, Mesh, Node, Texture

log = logging.getLogger(__name__)


@dataclass
class SceneGraph:
    name: str = "Scene"
    nodes: Dict[int, Node] = field(default_factory=dict)
    root: Optional[int] = None
    meshes: Dict[str, Mesh] = field(default_factory=dict)
    materials: Dict[str, Material] = field(default_factory=dict)
    textures: Dict[str, Texture] = field(default_factory=dict)
    lods: Dict[str, List[str]] = field(default_factory=dict)   # mesh name -> LOD mesh names
    _next_handle: int = 0

    # ── Registries ───────────────────────────────────────────────────────

    def add_mesh(self, mesh: Mesh) -> str:
        self.meshes[mesh.name] = mesh
        return mesh.name

    def add_material(self, material: Material) -> str:
        self.materials[material.name] = material
        return material.name

    def add_texture(self, texture: Texture) -> str:
        self.textures[texture.name] = texture
        return texture.name

    # ── Structure ────────────────────────────────────────────────────────

    def add_node(self, node: Node, parent: Optional[int] = None) -> int:
        """Insert *node* and return its handle.

        Without *parent* the node becomes the root, which is only allowed
        while the graph has none.
        """
        handle = self._next_handle
        self._next_handle += 1
        node.children = []
        node.parent = None
        self.nodes[handle] = node
        if parent is None:
            if self.root is not None:
                del self.nodes[handle]
                raise InvalidArgumentError(f"scene {self.name!r} already has a root")
            self.root = handle
        else:
            self.attach(handle, parent)
        return handle

    def node(self, handle: int) -> Node:
        try:
            return self.nodes[handle]
        except KeyError:
            raise InvalidArgumentError(f"unknown node handle {handle}") from None

    def attach(self, handle: int, parent: int, index: Optional[int] = None) -> None:
        child, new_parent = self.node(handle), self.node(parent)
        if any(h == parent for h, _ in self.walk(handle)):
            raise InvalidArgumentError(f"cannot attach node {handle} under its own descendant {parent}")
        if child.parent is not None:
            self.detach(handle)
        if index is None:
            new_parent.children.append(handle)
        else:
            new_parent.children.insert(index, handle)
        child.parent = parent

    def detach(self, handle: int) -> None:
        child = self.node(handle)
        if child.parent is not None:
            siblings = self.nodes[child.parent].children
            if handle in siblings:
                siblings.remove(handle)
        child.parent = None

    def remove_subtree(self, handle: int) -> int:
        """Detach *handle* and drop it and all descendants from the arena."""
        self.detach(handle)
        doomed = [h for h, _ in self.walk(handle)]
        for h in doomed:
            del self.nodes[h]
        if self.root == handle:
            self.root = None
        return len(doomed)

    # ── Traversal ────────────────────────────────────────────────────────

    def walk(self, start: Optional[int] = None) -> Iterator[Tuple[int, int]]:
        """Pre-order ``(handle, depth)`` pairs, children in stored order.

        Depth is relative to *start* (the root by default), which has depth 0.
        Reaching a handle twice means the tree has a cycle or a shared child
        and raises :class:`InvariantViolationError`.
        """
        start = self.root if start is None else start
        if start is None:
            return
        seen = set()
        stack: List[Tuple[int, int]] = [(start, 0)]
        while stack:
            handle, depth = stack.pop()
            if handle in seen:
                raise InvariantViolationError(f"scene {self.name!r}: node {handle} reached twice")
            seen.add(handle)
            yield handle, depth
            children = self.nodes[handle].children
            for child in reversed(children):
                stack.append((child, depth + 1))

    def handles(self) -> List[int]:
        return [h for h, _ in self.walk()]

    def node_count(self) -> int:
        return sum(1 for _ in self.walk())

    def mesh_nodes(self) -> List[int]:
        return [h for h, _ in self.walk() if self.nodes[h].mesh is not None]

    def find(self, name: str) -> Optional[int]:
        for handle, _ in self.walk():
            if self.nodes[handle].name == name:
                return handle
        return None

    def path_to(self, handle: int) -> List[int]:
        """Handles from the root down to *handle*, inclusive."""
        path = []
        current: Optional[int] = handle
        while current is not None:
            path.append(current)
            current = self.node(current).parent
        path.reverse()
        return path

    def depth_of(self, handle: int) -> int:
        return len(self.path_to(handle)) - 1

    def world_transform(self, handle: int) -> np.ndarray:
        out = np.eye(4)
        for h in self.path_to(handle):
            out = out @ self.nodes[h].transform
        return out

    def relative_transform(self, ancestor: int, handle: int) -> np.ndarray:
        """Product of the transforms strictly below *ancestor* down to *handle*."""
        path = self.path_to(handle)
        if ancestor not in path:
            raise InvalidArgumentError(f"node {ancestor} is not an ancestor of {handle}")
        out = np.eye(4)
        for h in path[path.index(ancestor) + 1:]:
            out = out @ self.nodes[h].transform
        return out

    # ── Copy / maintenance ───────────────────────────────────────────────

    def copy(self, name: Optional[str] = None) -> "SceneGraph":
        """Independent node arena; registry values are shared (they are never mutated)."""
        return SceneGraph(
            name=self.name if name is None else name,
            nodes={h: n.clone() for h, n in self.nodes.items()},
            root=self.root,
            meshes=dict(self.meshes),
            materials=dict(self.materials),
            textures=dict(self.textures),
            lods={k: list(v) for k, v in self.lods.items()},
            _next_handle=self._next_handle,
        )

    def validate(self) -> None:
        """Raise :class:`InvariantViolationError` on a broken tree or dangling reference."""
        if self.root is None:
            if self.nodes:
                raise InvariantViolationError(f"scene {self.name!r} has nodes but no root")
            return
        if self.root not in self.nodes:
            raise InvariantViolationError(f"scene {self.name!r}: root handle {self.root} missing")
        if self.nodes[self.root].parent is not None:
            raise InvariantViolationError(f"scene {self.name!r}: root has a parent")

        seen = set()
        stack = [self.root]
        while stack:
            handle = stack.pop()
            if handle in seen:
                raise InvariantViolationError(f"scene {self.name!r}: node {handle} reached twice")
            seen.add(handle)
            node = self.nodes[handle]
            if node.mesh is not None and node.mesh not in self.meshes:
                raise InvariantViolationError(f"node {node.name!r} references unknown mesh {node.mesh!r}")
            if node.material is not None and node.material not in self.materials:
                raise InvariantViolationError(
                    f"node {node.name!r} references unknown material {node.material!r}"
                )
            for child in node.children:
                if child not in self.nodes:
                    raise InvariantViolationError(f"node {node.name!r} has dangling child {child}")
                if self.nodes[child].parent != handle:
                    raise InvariantViolationError(f"node {child} parent link does not match")
                stack.append(child)

        for material in self.materials.values():
            for tex in material.texture_names():
                if tex not in self.textures:
                    raise InvariantViolationError(
                        f"material {material.name!r} references unknown texture {tex!r}"
                    )
        for base, chain in self.lods.items():
            missing = [m for m in [base, *chain] if m not in self.meshes]
            if missing:
                raise InvariantViolationError(f"LOD chain of {base!r} references unknown meshes {missing}")
        for mesh in self.meshes.values():
            mesh.validate()
