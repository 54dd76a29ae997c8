"""
ddmapgen - Master Constants Reference

Default values for every stage of the image-to-map pipeline.
Configuration files and command-line flags override these at run time.
"""

# =============================================================================
# IMAGE LOADING CONSTANTS
# =============================================================================

# Formats accepted by the image loader (Pillow format names)
SUPPORTED_IMAGE_FORMATS = ("PNG", "JPEG", "BMP", "GIF", "TIFF")

# Background used when flattening images with an alpha channel
ALPHA_COMPOSITE_COLOR = (255, 255, 255)

# =============================================================================
# SEGMENTATION CONSTANTS
# =============================================================================

# Label given to pixels that match no classification rule
DEFAULT_BACKGROUND_LABEL = "background"

# Region id reserved for the background region
BACKGROUND_REGION_ID = 0

# Regions with fewer pixels than this are noise and merge into background
DEFAULT_MIN_REGION_PIXELS = 16

# Pixel connectivity for connected-component labelling (4 or 8)
DEFAULT_CONNECTIVITY = 4

VALID_CONNECTIVITY = (4, 8)

# Euclidean RGB distance; ~sqrt(3) * 128 splits neutral greys at mid-grey
DEFAULT_COLOR_TOLERANCE = 221.0

# Default classification rules, evaluated in order (first match wins)
DEFAULT_CLASSIFICATION_RULES = [
    {
        "label": "wall",
        "color": (0, 0, 0),
        "tolerance": DEFAULT_COLOR_TOLERANCE,
        "role": "wall",
        "border_is_background": False,
    },
    {
        "label": "floor",
        "color": (255, 255, 255),
        "tolerance": DEFAULT_COLOR_TOLERANCE,
        "role": "floor",
        "border_is_background": True,
    },
]

# =============================================================================
# CONTOUR TRACING CONSTANTS
# =============================================================================

# A region needs at least this many boundary pixels to yield a contour
MIN_BOUNDARY_PIXELS = 3

# Distance (source pixels) a ring is pulled back from a saddle corner on each
# side, so rings meeting at a diagonal pixel link never touch
SADDLE_OFFSET = 0.05

# =============================================================================
# SIMPLIFICATION CONSTANTS
# =============================================================================

# Douglas-Peucker tolerance in source pixels
DEFAULT_SIMPLIFY_TOLERANCE = 1.5

# Attempts (halving the tolerance each time) before keeping the raw contour
DEFAULT_SIMPLIFY_RETRIES = 4

# Minimum vertices for a valid polygon ring
MIN_VERTICES = 3

# Coordinates closer than this are considered coincident
COINCIDENT_EPSILON = 1e-9

# =============================================================================
# CLASSIFICATION CONSTANTS
# =============================================================================

# Largest area (square source pixels) still considered a door
DEFAULT_DOOR_MAX_AREA = 400.0

# Largest long/short side ratio of a door's minimum rotated rectangle
DEFAULT_DOOR_MAX_ASPECT = 6.0

# Buffer distance (source pixels) used to find walls touching a door
DEFAULT_DOOR_CONTACT_DISTANCE = 1.5

# Minimum number of disjoint wall contacts for a gap to read as a doorway
DOOR_MIN_WALL_CONTACTS = 2

# =============================================================================
# DOCUMENT CONSTANTS
# =============================================================================

# Source pixels per map grid unit
DEFAULT_SCALE = 32.0

# Shape ids are derived from region ids with this pattern
SHAPE_ID_FORMAT = "shape_{:04d}"

# =============================================================================
# CONCURRENCY CONSTANTS
# =============================================================================

# 1 = trace and simplify regions serially
DEFAULT_WORKERS = 1

# Upper bound on worker threads
MAX_WORKERS = 32

# =============================================================================
# DUNGEONDRAFT CONSTANTS
# =============================================================================

MAP_FILE_SUFFIX = ".dungeondraft_map"

# One-time backup written before an existing map is replaced
BACKUP_SUFFIX = ".dungeondraft_map.bak"

# Temp file suffix for atomic writes
TEMP_SUFFIX = ".tmp"

# DungeonDraft world units per grid cell
DD_UNITS_PER_CELL = 256

DD_CREATION_BUILD = "1.1.0.3"
DD_WORLD_FORMAT = 2

DD_WALL_TEXTURE = "res://textures/walls/battlements.png"
DD_WALL_COLOR = "ff605f58"
DD_FLOOR_TEXTURE = "res://textures/tilesets/simple/tileset_stone.png"
DD_FLOOR_COLOR = "ffffffff"
DD_UNKNOWN_COLOR = "ffff00ff"
DD_DOOR_TEXTURE = "res://textures/portals/door_00.png"

# Pattern layers (higher draws on top)
DD_FLOOR_LAYER = 100
DD_DOOR_LAYER = 200
DD_UNKNOWN_LAYER = 300

# Settings environment variables
ENV_PREFIX = "DDMAPGEN_"
ENV_CONFIG_PATH = "DDMAPGEN_CONFIG"
ENV_VERBOSE = "DDMAPGEN_VERBOSE"

# =============================================================================
# SEMANTIC ROLES
# =============================================================================

class Role:
    WALL = "wall"
    FLOOR = "floor"
    DOOR = "door"
    UNKNOWN = "unknown"

    ALL = ("wall", "floor", "door", "unknown")

# =============================================================================
# PIPELINE STATES
# =============================================================================

class PipelineState:
    IDLE = "Idle"
    LOADED = "Loaded"
    SEGMENTED = "Segmented"
    TRACED = "Traced"
    SIMPLIFIED = "Simplified"
    CLASSIFIED = "Classified"
    BUILT = "Built"
    SERIALIZED = "Serialized"
    FAILED = "Failed"

    ORDER = (
        "Idle",
        "Loaded",
        "Segmented",
        "Traced",
        "Simplified",
        "Classified",
        "Built",
        "Serialized",
    )

# =============================================================================
# ERROR KINDS
# =============================================================================

class ErrorKind:
    INVALID_IMAGE = "InvalidImage"
    DEGENERATE_REGION = "DegenerateRegion"
    EMPTY_DOCUMENT = "EmptyDocument"
    SERIALIZATION_FAILURE = "SerializationFailure"
    CONFIG_ERROR = "ConfigError"
    CANCELLED = "Cancelled"
