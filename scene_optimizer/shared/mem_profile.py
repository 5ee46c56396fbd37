"""Memory instrumentation for the optimization pipeline and batch runs.

``tracemalloc_snapshot(label)`` wraps a block and logs how much Python heap
the block retained. The pipeline wraps every pass with it, so a pass that
duplicates vertex buffers shows up in the log straight away.

``@profile_memory`` produces a line-by-line memory table via
``memory_profiler``. It only does anything when ``PROFILE_MEMORY=1`` is set,
and the batch coordinator uses it on the per-scene worker.

Usage::

    with tracemalloc_snapshot("mesh simplification"):
        graph = simplify_scene_meshes(graph, settings)

    #   PROFILE_MEMORY=1 python main.py --batch 4
"""
from __future__ import annotations

import contextlib
import logging
import os
import tracemalloc
from typing import Generator

log = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def profiling_enabled() -> bool:
    return os.environ.get("PROFILE_MEMORY", "0").strip().lower() in _TRUTHY


@contextlib.contextmanager
def tracemalloc_snapshot(label: str, top_n: int = 5) -> Generator[None, None, None]:
    """Log the heap delta of the enclosed block.

    The summary line goes to INFO and the largest *top_n* allocation sites to
    DEBUG. Nested use is fine; tracing is only stopped by the call that
    started it.
    """
    started_here = not tracemalloc.is_tracing()
    if started_here:
        tracemalloc.start(10)

    before = tracemalloc.take_snapshot()
    bytes_before = sum(s.size for s in before.statistics("filename"))
    try:
        yield
    finally:
        after = tracemalloc.take_snapshot()
        bytes_after = sum(s.size for s in after.statistics("filename"))
        delta = bytes_after - bytes_before
        log.info(
            "[mem] %s: %+d KB  (%.2f MB -> %.2f MB)",
            label,
            delta // 1024,
            bytes_before / 1024 / 1024,
            bytes_after / 1024 / 1024,
        )
        for rank, stat in enumerate(after.compare_to(before, "lineno")[:top_n], 1):
            if stat.size_diff == 0:
                continue
            site = str(stat.traceback[0]) if stat.traceback else "<unknown>"
            log.debug("[mem]  #%-2d %+8.1f KB  %s", rank, stat.size_diff / 1024, site)
        if started_here:
            tracemalloc.stop()


def profile_memory(fn):
    """Wrap *fn* with ``memory_profiler.profile`` when ``PROFILE_MEMORY=1``.

    Without the environment variable the function is returned untouched.
    With it set but ``memory-profiler`` missing, a warning is logged once and
    the function still runs unwrapped.
    """
    if not profiling_enabled():
        return fn

    try:
        from memory_profiler import profile as _mp_profile  # type: ignore[import-untyped]
    except ImportError:
        log.warning(
            "[mem] PROFILE_MEMORY=1 but 'memory-profiler' is not installed. "
            "Run:  pip install memory-profiler"
        )
        return fn

    log.debug("[mem] memory_profiler active -> %s.%s", fn.__module__, fn.__qualname__)
    return _mp_profile(fn)
