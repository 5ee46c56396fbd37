"""
#WHERE
    Imported by the analyzers, the optimization passes, the pipeline and
    the batch coordinator. This is the single place where constants and
    default thresholds are defined.

#WHAT
    Centralised thresholds, tolerances and defaults. Change values here
    rather than in the individual module files.

#INPUT / #OUTPUT
    Constants only, no I/O.
"""

# ── Hierarchy ────────────────────────────────────────────────────────────

DEEP_NODE_DEPTH: int = 10           # nodes deeper than this are "deep"
HIGH_CHILD_COUNT: int = 100         # nodes with more children than this are flagged
IDENTITY_EPSILON: float = 1e-4      # per-element tolerance for "is identity"

# ── Mesh analysis ────────────────────────────────────────────────────────

HIGH_POLY_THRESHOLD: int = 100_000
HIGH_DENSITY_THRESHOLD: float = 1000.0   # vertices per unit² of bbox surface
UV_GRID_SIZE: int = 100                  # overlap bucket grid resolution
UV_SEAM_THRESHOLD: float = 0.5           # UV edge length that counts as a seam
UV_MIN_AREA: float = 0.1                 # valid UV bbox area range
UV_MAX_AREA: float = 0.9

# bytes per element used for mesh memory estimates
VERTEX_BYTES: int = 12
UV_BYTES: int = 8
NORMAL_BYTES: int = 12
TANGENT_BYTES: int = 16
INDEX_BYTES: int = 4

# ── Material analysis ────────────────────────────────────────────────────

MAX_TEXTURES_PER_MATERIAL: int = 8
MAX_MATERIAL_TEXTURE_BYTES: int = 100 * 1024 * 1024
MAX_SHADER_PROPERTIES: int = 20
MAX_SHADER_SAMPLERS: int = 8
MAX_SHADER_KEYWORDS: int = 5
REDUNDANCY_THRESHOLD: float = 0.95
TEXTURE_SIMILARITY_WEIGHT: float = 0.6
PROPERTY_SIMILARITY_WEIGHT: float = 0.4
HIGH_RES_TEXTURE_SIZE: int = 2048

# bytes per pixel by texture format, unknown formats count as 4
TEXTURE_FORMAT_BPP = {
    "RGBA": 4.0,
    "RGBA8": 4.0,
    "RGB": 3.0,
    "RGB8": 3.0,
    "RGBA16": 8.0,
    "R8": 1.0,
    "BC1": 0.5,
    "BC3": 1.0,
    "BC7": 1.0,
}
DEFAULT_TEXTURE_BPP: float = 4.0
COMPRESSED_TEXTURE_FORMAT: str = "BC7"

# ── Shader simplification ────────────────────────────────────────────────

# targets below each bound pick that shader, anything higher keeps the original
SIMPLE_SHADER: str = "SimpleDiffuse"
LITE_SHADER: str = "StandardLite"
SIMPLE_SHADER_MAX_COMPLEXITY: float = 0.3
LITE_SHADER_MAX_COMPLEXITY: float = 0.7
SHADER_PROPERTIES = {
    SIMPLE_SHADER: ("_MainTex", "_Color", "_Cutoff"),
    LITE_SHADER: ("_MainTex", "_Color", "_Cutoff", "_BumpMap", "_Metallic", "_Glossiness"),
}
SHADER_KEYWORDS = {
    SIMPLE_SHADER: ("_ALPHATEST_ON",),
    LITE_SHADER: ("_ALPHATEST_ON", "_NORMALMAP"),
}

# ── Instancing / transforms ──────────────────────────────────────────────

TRANSFORM_COMPONENT_TOLERANCE: float = 0.1   # per-component diff for "similar"
SCALE_PRESERVE_TOLERANCE: float = 1e-3       # fold check on decomposed scale
MERGED_NODE_PREFIX: str = "Merged_"
LOD_SUFFIX: str = "_LOD"
DEFAULT_LOD_FACTOR: float = 0.5

# ── Scoring ──────────────────────────────────────────────────────────────

# strictly-greater thresholds, lowest first, each tier adds 5 points
POLYGON_SCORE_TIERS = (50_000, 100_000, 500_000, 1_000_000)
DEPTH_SCORE_TIERS = (3, 5, 7, 10)
MATERIAL_SCORE_TIERS = (10, 20, 50, 100)
TEXTURE_SCORE_TIERS = (10, 20, 50, 100)
MEMORY_SCORE_TIERS = (50_000_000, 100_000_000, 500_000_000, 1_000_000_000)
SCORE_TIER_POINTS = (5, 10, 15, 20)
MAX_SCORE: int = 100

# ── Optimization defaults ────────────────────────────────────────────────

DEFAULT_INSTANCE_THRESHOLD: float = 0.8
DEFAULT_MAX_FLATTEN_DEPTH: int = 3
DEFAULT_TARGET_POLYGONS: int = 10_000
DEFAULT_LOD_LEVELS: int = 3
DEFAULT_TARGET_MEMORY_MB: int = 1024
DEFAULT_TARGET_DRAW_CALLS: int = 100
DEFAULT_MATERIAL_THRESHOLD: float = 0.95
DEFAULT_MAX_TEXTURE_SIZE: int = 4096
DEFAULT_SHADER_COMPLEXITY: float = 0.5

# ── Batch ────────────────────────────────────────────────────────────────

OPTIMIZED_DIR_NAME: str = "Optimized"
OPTIMIZED_SUFFIX: str = "_optimized"
