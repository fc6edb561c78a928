"""Process-wide loading of the interactive map modules."""

from farmmap.utils.map_loading.provider import (
    DRAWING_MODULE,
    MAP_MODULE,
    MapLoadOptions,
    MapProvider,
    ModuleScriptLoader,
    ScriptElement,
    ensure_loaded,
    get_map_provider,
)

__all__ = [
    "DRAWING_MODULE",
    "MAP_MODULE",
    "MapLoadOptions",
    "MapProvider",
    "ModuleScriptLoader",
    "ScriptElement",
    "ensure_loaded",
    "get_map_provider",
]
