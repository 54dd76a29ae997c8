# Output module: DungeonDraft map files and shape previews

from .dungeondraft_writer import (
    get_backup_path,
    map_to_dict,
    write_map,
)

from .dungeondraft_reader import (
    MapShapeRecord,
    LoadedMap,
    read_map,
)

from .preview import (
    format_shape_summary,
    default_render_path,
    render_shapes,
)

__all__ = [
    # Writer
    "get_backup_path",
    "map_to_dict",
    "write_map",
    # Reader
    "MapShapeRecord",
    "LoadedMap",
    "read_map",
    # Preview
    "format_shape_summary",
    "default_render_path",
    "render_shapes",
]
