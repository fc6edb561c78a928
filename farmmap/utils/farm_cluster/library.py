"""Process-wide lazy loader for the clustering library."""

from __future__ import annotations

import importlib
import sys
from collections.abc import Callable
from dataclasses import dataclass
from types import ModuleType

from loguru import logger

from farmmap.core.errors import LoadError
from farmmap.utils.scheduling import Scheduler, qt_scheduler

CLUSTER_MODULE = "sklearn.cluster"


@dataclass(eq=False)
class _Waiter:
    on_ready: Callable[[ModuleType], None]
    on_failed: Callable[[Exception], None]
    done: bool = False


class LibraryRequest:
    """Handle returned by :meth:`ClusterLibrary.acquire`."""

    def __init__(self, library: "ClusterLibrary", waiter: _Waiter | None) -> None:
        self._library = library
        self._waiter = waiter

    @property
    def pending(self) -> bool:
        return self._waiter is not None and not self._waiter.done

    def cancel(self) -> None:
        """Drop the callbacks; neither will be called afterwards."""
        if self._waiter is not None and not self._waiter.done:
            self._waiter.done = True
            self._library._discard(self._waiter)


class ClusterLibrary:
    """Import ``sklearn.cluster`` at most once and share it.

    The first caller starts the import on the next event-loop turn. Callers
    that arrive while that import is in flight give up after ``timeout_ms``.
    A failed import resets the loader so a later request starts over.

    Parameters
    ----------
    scheduler : Scheduler, optional
        Deferred-callback runner, defaults to ``QTimer.singleShot``.
    importer : Callable[[str], ModuleType], optional
        Module importer, defaults to :func:`importlib.import_module`.
    module_name : str, optional
        Module to import.
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        importer: Callable[[str], ModuleType] | None = None,
        module_name: str = CLUSTER_MODULE,
    ) -> None:
        self._scheduler = scheduler or qt_scheduler
        self._importer = importer or importlib.import_module
        self._module_name = module_name
        self._module: ModuleType | None = None
        self._state = "idle"
        self._waiters: list[_Waiter] = []
        self.import_count = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def module(self) -> ModuleType | None:
        return self._module

    def acquire(
        self,
        on_ready: Callable[[ModuleType], None],
        on_failed: Callable[[Exception], None],
        timeout_ms: int = 5000,
    ) -> LibraryRequest:
        """Request the clustering module.

        Parameters
        ----------
        on_ready : Callable[[ModuleType], None]
            Receives the module once available, synchronously when it is
            already loaded.
        on_failed : Callable[[Exception], None]
            Receives a :class:`LoadError` on import failure or timeout.
        timeout_ms : int, optional
            Wait limit for callers joining an in-flight import.

        Returns
        -------
        LibraryRequest
            Handle to cancel a pending request.
        """
        if self._module is None and self._module_name in sys.modules:
            self._module = sys.modules[self._module_name]
            self._state = "loaded"
        if self._module is not None:
            on_ready(self._module)
            return LibraryRequest(self, None)

        waiter = _Waiter(on_ready=on_ready, on_failed=on_failed)
        self._waiters.append(waiter)
        if self._state == "loading":
            logger.debug("Joining in-flight clustering library load")
            self._scheduler(timeout_ms, lambda: self._on_timeout(waiter, timeout_ms))
        else:
            self._state = "loading"
            logger.info(f"Loading clustering library: {self._module_name}")
            self._scheduler(0, self._run_import)
        return LibraryRequest(self, waiter)

    def _run_import(self) -> None:
        try:
            module = self._importer(self._module_name)
        except Exception as exc:
            logger.error(f"Failed to load clustering library: {exc}")
            self._state = "idle"
            self._flush(error=LoadError(f"Failed to load clustering library: {exc}"))
            return
        self.import_count += 1
        self._module = module
        self._state = "loaded"
        logger.info("Clustering library loaded")
        self._flush(module=module)

    def _flush(
        self, module: ModuleType | None = None, error: Exception | None = None
    ) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if waiter.done:
                continue
            waiter.done = True
            if module is not None:
                waiter.on_ready(module)
            else:
                waiter.on_failed(error)

    def _on_timeout(self, waiter: _Waiter, timeout_ms: int) -> None:
        if waiter.done:
            return
        waiter.done = True
        self._discard(waiter)
        logger.warning(f"Clustering library not ready after {timeout_ms} ms")
        waiter.on_failed(LoadError("Timed out waiting for clustering library"))

    def _discard(self, waiter: _Waiter) -> None:
        if waiter in self._waiters:
            self._waiters.remove(waiter)


_LIBRARY: ClusterLibrary | None = None


def get_cluster_library() -> ClusterLibrary:
    """Return the process-wide clustering library loader."""
    global _LIBRARY
    if _LIBRARY is None:
        _LIBRARY = ClusterLibrary()
    return _LIBRARY
