"""
#WHERE
    Called by main.py (--batch) and tests.

#WHAT
    Runs import -> optimize -> export over a list of scene paths, one scene
    at a time. A failing scene is logged and recorded, and the batch moves on
    to the next one. Cancellation is cooperative and only checked between
    scenes.

    State machine: IDLE -> RUNNING -> COMPLETED | CANCELLED. An exception
    from a caller hook aborts the batch: ``on_batch_error`` fires, the state
    drops back out of RUNNING and the exception propagates.

#INPUT
    Scene paths, an OptimizationProfile (or a profile name resolved through
    the injected ProfileStore), a SceneSupplier and a SceneSink.

#OUTPUT
    BatchReport; optimized scenes written to ``<dir>/Optimized/<stem>_optimized<ext>``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Callable, List, Optional, Sequence, Union

from tqdm import tqdm

from scene_optimizer.shared.constants import OPTIMIZED_DIR_NAME, OPTIMIZED_SUFFIX
from scene_optimizer.shared.errors import InvalidArgumentError, NullReferenceError
from scene_optimizer.shared.mem_profile import profile_memory
from scene_optimizer.pipeline import OptimizationPipeline, OptimizationSettings, PipelineResult
from .io import SceneSink, SceneSupplier
from .profiles import InMemoryProfileStore, OptimizationProfile, ProfileStore

log = logging.getLogger(__name__)


class BatchState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class BatchItemResult:
    path: str
    output_path: str
    success: bool
    error: Optional[str] = None
    elapsed_ms: float = 0.0
    nodes_before: int = 0
    nodes_after: int = 0


@dataclass
class BatchReport:
    profile: str
    total: int
    state: BatchState = BatchState.IDLE
    items: List[BatchItemResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> List[str]:
        return [i.path for i in self.items if i.success]

    @property
    def failed(self) -> List[str]:
        return [i.path for i in self.items if not i.success]

    @property
    def progress(self) -> float:
        return self.processed / self.total if self.total else 0.0


def optimized_output_path(path: str) -> str:
    """``a/b/scene.usd`` -> ``a/b/Optimized/scene_optimized.usd``."""
    p = PurePath(path)
    return (p.parent / OPTIMIZED_DIR_NAME / f"{p.stem}{OPTIMIZED_SUFFIX}{p.suffix}").as_posix()


class BatchCoordinator:
    """Sequential batch optimizer with per-item failure isolation."""

    def __init__(
        self,
        supplier: SceneSupplier,
        sink: SceneSink,
        profiles: ProfileStore | None = None,
        pipeline: OptimizationPipeline | None = None,
        on_progress: Callable[[float], None] | None = None,
        on_item_done: Callable[[str], None] | None = None,
        on_batch_done: Callable[[], None] | None = None,
        on_batch_error: Callable[[Exception], None] | None = None,
        show_progress: bool = False,
    ) -> None:
        self.supplier = supplier
        self.sink = sink
        self.profiles = profiles if profiles is not None else InMemoryProfileStore()
        self.pipeline = pipeline or OptimizationPipeline()
        self.on_progress = on_progress
        self.on_item_done = on_item_done
        self.on_batch_done = on_batch_done
        self.on_batch_error = on_batch_error
        self.show_progress = show_progress
        self._cancel = threading.Event()
        self._state = BatchState.IDLE
        self._progress = 0.0

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def progress(self) -> float:
        return self._progress

    def cancel(self) -> None:
        """Request a stop; the scene in flight still finishes."""
        if self._state is BatchState.RUNNING:
            log.info("[batch] cancellation requested")
        self._cancel.set()

    # ── Validation ───────────────────────────────────────────────────────

    def _resolve(self, paths: Sequence[str] | None,
                 profile: Union[OptimizationProfile, str, None]) -> OptimizationProfile:
        if self._state is BatchState.RUNNING:
            raise InvalidArgumentError("a batch is already running")
        if paths is None:
            raise NullReferenceError("scene paths must not be None")
        if len(paths) == 0:
            raise InvalidArgumentError("no scenes to process")
        if profile is None:
            raise NullReferenceError("optimization profile must not be None")
        if isinstance(profile, str):
            profile = self.profiles.load(profile)
        if profile.settings is None:
            raise NullReferenceError(f"profile {profile.name!r} has no settings")
        profile.settings.validate()
        return profile

    # ── Run ──────────────────────────────────────────────────────────────

    @profile_memory
    def _process_item(self, path: str, settings: OptimizationSettings) -> PipelineResult:
        graph = self.supplier.import_scene(path)
        result = self.pipeline.run(graph, settings)
        self.sink.export_scene(optimized_output_path(path), result.graph)
        return result

    def run(self, paths: Sequence[str], profile: Union[OptimizationProfile, str]) -> BatchReport:
        try:
            resolved = self._resolve(paths, profile)
        except Exception as exc:
            log.error("[batch] rejected: %s", exc)
            if self.on_batch_error:
                self.on_batch_error(exc)
            raise

        report = BatchReport(profile=resolved.name, total=len(paths))
        self._cancel.clear()
        self._progress = 0.0
        self._state = report.state = BatchState.RUNNING
        log.info("[batch] %d scenes with profile %s", len(paths), resolved.name)

        pbar = tqdm(paths, desc="Batch", leave=True, disable=not self.show_progress)
        try:
            for path in pbar:
                if self._cancel.is_set():
                    self._state = BatchState.CANCELLED
                    log.warning("[batch] cancelled after %d/%d scenes", report.processed, report.total)
                    break
                self._run_item(path, resolved.settings, report)
                pbar.set_postfix(ok=len(report.succeeded), failed=len(report.failed))

            if self._state is BatchState.RUNNING:
                self._state = BatchState.COMPLETED
                log.info("[batch] completed: %d ok, %d failed", len(report.succeeded), len(report.failed))
                if self.on_batch_done:
                    self.on_batch_done()
        except Exception as exc:
            # only hooks get here, scene failures are recorded per item
            log.error("[batch] aborted after %d/%d scenes: %s", report.processed, report.total, exc)
            if self.on_batch_error:
                self.on_batch_error(exc)
            raise
        finally:
            pbar.close()
            if self._state is BatchState.RUNNING:
                self._state = BatchState.IDLE
            report.state = self._state
        return report

    def _run_item(self, path: str, settings: OptimizationSettings, report: BatchReport) -> None:
        t0 = time.perf_counter()
        item = BatchItemResult(path=path, output_path=optimized_output_path(path), success=False)
        try:
            result = self._process_item(path, settings)
        except Exception as exc:
            item.error = f"{type(exc).__name__}: {exc}"
            log.error("[batch] %s failed: %s", path, item.error)
        else:
            item.success = True
            item.nodes_before = result.before.node_count
            item.nodes_after = result.after.node_count
        item.elapsed_ms = (time.perf_counter() - t0) * 1000
        report.items.append(item)

        self._progress = report.progress
        if item.success and self.on_item_done:
            self.on_item_done(path)
        if self.on_progress:
            self.on_progress(self._progress)
