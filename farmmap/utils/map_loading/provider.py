"""Map provider singleton.

The interactive map surface lives in modules that pull in the whole
pyqtgraph/Qt graphics stack, so they are imported lazily and at most once per
process. Every consumer awaits the same :class:`concurrent.futures.Future`.

Only the load started by the first caller for an option set may resolve or
fail that future; later callers only read or await it.
"""

from __future__ import annotations

import importlib
import sys
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Protocol

from loguru import logger

from farmmap.core.errors import LoadError
from farmmap.utils.scheduling import Scheduler, qt_scheduler

MAP_MODULE = "farmmap.gui.components.map_canvas"
DRAWING_MODULE = "farmmap.gui.components.drawing_tool"


@dataclass(frozen=True)
class MapLoadOptions:
    """Option set selecting which map libraries to load."""

    include_drawing: bool = False

    @property
    def key(self) -> str:
        return "map+drawing" if self.include_drawing else "map"

    @property
    def modules(self) -> tuple[str, ...]:
        if self.include_drawing:
            return (MAP_MODULE, DRAWING_MODULE)
        return (MAP_MODULE,)


@dataclass
class ScriptElement:
    """Registry entry for one in-flight or completed load."""

    key: str
    modules: tuple[str, ...]
    state: str = "loading"


class ScriptLoader(Protocol):
    """Fetches the map modules for one option set."""

    def probe(self, options: MapLoadOptions) -> SimpleNamespace | None:
        """Return the namespace if it is already usable, else ``None``."""

    def load(
        self,
        options: MapLoadOptions,
        on_load: Callable[[SimpleNamespace], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        """Start loading; call exactly one of the callbacks later."""


def _namespace_from_modules(modules: dict[str, object]) -> SimpleNamespace:
    """Expose loaded modules by their short names."""
    return SimpleNamespace(
        **{name.rsplit(".", 1)[-1]: module for name, module in modules.items()}
    )


class ModuleScriptLoader:
    """Import map modules on the next Qt event-loop turn.

    Parameters
    ----------
    scheduler : Scheduler, optional
        Deferred-callback runner, defaults to ``QTimer.singleShot``.
    importer : Callable[[str], object], optional
        Module importer, defaults to :func:`importlib.import_module`.
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        importer: Callable[[str], object] | None = None,
    ) -> None:
        self._scheduler = scheduler or qt_scheduler
        self._importer = importer or importlib.import_module

    def probe(self, options: MapLoadOptions) -> SimpleNamespace | None:
        if not all(name in sys.modules for name in options.modules):
            return None
        return _namespace_from_modules({name: sys.modules[name] for name in options.modules})

    def load(
        self,
        options: MapLoadOptions,
        on_load: Callable[[SimpleNamespace], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        def _run() -> None:
            try:
                modules = {name: self._importer(name) for name in options.modules}
            except Exception as exc:
                on_error(exc)
                return
            on_load(_namespace_from_modules(modules))

        self._scheduler(0, _run)


class MapProvider:
    """Load map modules once per option set and share the result.

    Examples
    --------
    >>> provider = MapProvider()
    >>> future = provider.ensure_loaded(MapLoadOptions(include_drawing=True))
    >>> future is provider.ensure_loaded(MapLoadOptions(include_drawing=True))
    True
    """

    def __init__(self, loader: ScriptLoader | None = None) -> None:
        self._loader = loader or ModuleScriptLoader()
        self._futures: dict[str, Future] = {}
        self._elements: dict[str, ScriptElement] = {}

    @property
    def script_elements(self) -> list[ScriptElement]:
        """Registered load elements, one per distinct option set."""
        return list(self._elements.values())

    def is_loaded(self, options: MapLoadOptions | None = None) -> bool:
        future = self._futures.get((options or MapLoadOptions()).key)
        return bool(future is not None and future.done() and future.exception() is None)

    def ensure_loaded(self, options: MapLoadOptions | None = None) -> Future:
        """Return the shared future for ``options``, starting a load if needed.

        Parameters
        ----------
        options : MapLoadOptions, optional
            Libraries to load; defaults to the plain map.

        Returns
        -------
        concurrent.futures.Future
            Resolves with a namespace of the loaded modules, or fails with
            :class:`LoadError`.
        """
        options = options or MapLoadOptions()
        future = self._futures.get(options.key)
        if future is not None:
            return future

        future = Future()
        self._futures[options.key] = future

        namespace = self._loader.probe(options)
        if namespace is not None:
            logger.debug(f"Map modules already available: {options.key}")
            future.set_result(namespace)
            return future

        element = ScriptElement(key=options.key, modules=options.modules)
        self._elements[options.key] = element
        logger.info(f"Loading map modules: {options.key}")
        try:
            self._loader.load(
                options,
                on_load=lambda ns: self._on_load(element, future, ns),
                on_error=lambda exc: self._on_error(element, future, exc),
            )
        except Exception as exc:
            self._on_error(element, future, exc)
        return future

    def _on_load(
        self, element: ScriptElement, future: Future, namespace: SimpleNamespace
    ) -> None:
        if future.done():
            return
        element.state = "loaded"
        logger.info(f"Map modules loaded: {element.key}")
        future.set_result(namespace)

    def _on_error(self, element: ScriptElement, future: Future, exc: Exception) -> None:
        if future.done():
            return
        element.state = "failed"
        if self._futures.get(element.key) is future:
            del self._futures[element.key]
        if self._elements.get(element.key) is element:
            del self._elements[element.key]
        logger.error(f"Failed to load map modules ({element.key}): {exc}")
        future.set_exception(LoadError(f"Failed to load map modules: {exc}"))


_PROVIDER: MapProvider | None = None


def get_map_provider() -> MapProvider:
    """Return the process-wide provider, creating it on first use."""
    global _PROVIDER
    if _PROVIDER is None:
        _PROVIDER = MapProvider()
    return _PROVIDER


def ensure_loaded(options: MapLoadOptions | None = None) -> Future:
    """Ensure the map modules for ``options`` are loaded process-wide."""
    return get_map_provider().ensure_loaded(options)
