"""
#WHERE
    Imported by every module under scene_optimizer.modules and by the pipeline.

#WHAT
    Constants, the exception taxonomy, 4x4 transform helpers and memory
    instrumentation.
"""

from .errors import (
    InvalidArgumentError,
    InvariantViolationError,
    NullReferenceError,
    SceneIOError,
    SceneNotFoundError,
    SceneOptimizerError,
)
from .mem_profile import profile_memory, tracemalloc_snapshot

__all__ = [
    "InvalidArgumentError",
    "InvariantViolationError",
    "NullReferenceError",
    "SceneIOError",
    "SceneNotFoundError",
    "SceneOptimizerError",
    "profile_memory",
    "tracemalloc_snapshot",
]
