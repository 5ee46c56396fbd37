"""Scene-graph analysis and optimization for 3D scenes."""

__version__ = "0.1.0"
