# Raster floor plan to DungeonDraft map converter

__version__ = "0.1.0"
