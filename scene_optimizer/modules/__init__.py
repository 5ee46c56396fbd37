"""Analysis, optimization, batch and scene-graph stages."""
