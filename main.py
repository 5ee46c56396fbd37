#!/usr/bin/env python3
"""Scene optimizer: analyze and optimize a demo scene, or run a demo batch."""

import argparse
import json
import logging

from scene_optimizer.modules.analysis import SceneAnalyzer
from scene_optimizer.modules.batch import BatchCoordinator, InMemoryProfileStore, InMemorySceneStore
from scene_optimizer.modules.scene_graph import build_demo_scene
from scene_optimizer.pipeline import OptimizationPipeline

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)-8s  %(message)s", datefmt="%H:%M:%S")

_TOGGLES = {
    "instances": "optimize_instances",
    "flatten": "flatten_hierarchy",
    "transforms": "optimize_transforms",
    "meshes": "optimize_meshes",
    "materials": "optimize_materials",
    "textures": "optimize_textures",
}


def _args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Scene-graph analysis and optimization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python main.py --profile Performance\n"
            "  python main.py --no-flatten --max-depth 4 --target-polygons 2000\n"
            "  python main.py --batch 5 --cancel-after 3\n"
        ),
    )
    p.add_argument("--name", default="DemoScene")
    p.add_argument("--profile", default="Balanced", help="Performance | Balanced | Quality")
    p.add_argument("--rows", type=int, default=3, help="crate rows in the demo scene")
    p.add_argument("--depth", type=int, default=6, help="prop chain depth in the demo scene")
    p.add_argument("--terrain", type=int, default=64, help="terrain grid resolution")
    p.add_argument("--max-depth", type=int, default=None)
    p.add_argument("--target-polygons", type=int, default=None)
    p.add_argument("--lod-levels", type=int, default=None)
    for flag in _TOGGLES:
        p.add_argument(f"--no-{flag}", dest=f"no_{flag}", action="store_true")
    p.add_argument("--analyze-only", action="store_true")
    p.add_argument("--batch", type=int, default=0, help="run the coordinator over N demo scenes")
    p.add_argument("--cancel-after", type=int, default=0)
    p.add_argument("--json", action="store_true", help="print summaries as JSON")
    return p.parse_args()


def _print(title: str, payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
        return
    print(f"\n{title}")
    for key, value in payload.items():
        print(f"  {key:<16}: {value}")


def _run_batch(args: argparse.Namespace, profiles: InMemoryProfileStore) -> None:
    scenes = {
        f"scenes/{args.name}_{i}.usd": build_demo_scene(f"{args.name}_{i}", crate_rows=args.rows + i,
                                                        chain_depth=args.depth, seed=i)
        for i in range(args.batch)
    }
    store = InMemorySceneStore(scenes)
    coordinator = BatchCoordinator(store, store, profiles=profiles, show_progress=True)
    if args.cancel_after:
        done = []

        def _maybe_cancel(path: str) -> None:
            done.append(path)
            if len(done) >= args.cancel_after:
                coordinator.cancel()

        coordinator.on_item_done = _maybe_cancel

    report = coordinator.run(list(scenes), args.profile)
    _print("batch", {
        "state": report.state.value,
        "progress": f"{report.progress:.2f}",
        "succeeded": report.succeeded,
        "failed": report.failed,
        "outputs": [i.output_path for i in report.items if i.success],
    }, args.json)


def main() -> None:
    args = _args()
    profiles = InMemoryProfileStore()
    profile = profiles.load(args.profile)
    settings = profile.settings
    if args.max_depth is not None:
        settings.max_flatten_depth = args.max_depth
    if args.target_polygons is not None:
        settings.target_polygon_count = args.target_polygons
    if args.lod_levels is not None:
        settings.lod_levels = args.lod_levels
    for flag, attr in _TOGGLES.items():
        if getattr(args, f"no_{flag}"):
            setattr(settings, attr, False)

    if args.batch:
        profiles.save(profile)
        _run_batch(args, profiles)
        return

    graph = build_demo_scene(args.name, crate_rows=args.rows, chain_depth=args.depth,
                             terrain_resolution=args.terrain)
    analyzer = SceneAnalyzer()
    before = analyzer.analyze(graph)
    _print("analysis", before.summary(), args.json)
    for rec in before.recommendations:
        print(f"  [{rec.priority.name:<8}] {rec.title} ({rec.impact_score:.0f}): {rec.description}")
    if args.analyze_only:
        return

    result = OptimizationPipeline(settings).run(graph)
    _print("optimization", result.summary(), args.json)
    after = analyzer.analyze(result.graph)
    print(f"\nscore  {before.optimization_score} -> {after.optimization_score}")


if __name__ == "__main__":
    main()
