"""Tests for the lazily loaded clustering library."""

from __future__ import annotations

from types import SimpleNamespace

from farmmap.core.errors import LoadError
from farmmap.utils.farm_cluster import ClusterLibrary

FAKE_MODULE_NAME = "farmmap_tests_fake_cluster"


class _ManualScheduler:
    def __init__(self) -> None:
        self.calls: list[tuple[int, object]] = []

    def __call__(self, delay_ms, callback) -> None:
        self.calls.append((delay_ms, callback))

    def run(self, delay_ms: int) -> None:
        """Run and drop every callback scheduled with ``delay_ms``."""
        due = [call for call in self.calls if call[0] == delay_ms]
        self.calls = [call for call in self.calls if call[0] != delay_ms]
        for _delay, callback in due:
            callback()


def _make_library(fail: bool = False):
    scheduler = _ManualScheduler()
    module = SimpleNamespace(name=FAKE_MODULE_NAME)
    imports: list[str] = []

    def importer(name: str):
        imports.append(name)
        if fail:
            raise ImportError(f"No module named {name}")
        return module

    library = ClusterLibrary(scheduler=scheduler, importer=importer, module_name=FAKE_MODULE_NAME)
    return library, scheduler, module, imports


def test_library_is_imported_once_for_every_caller() -> None:
    library, scheduler, module, imports = _make_library()
    ready: list[str] = []

    library.acquire(lambda m: ready.append("first"), lambda exc: ready.append("fail"))
    library.acquire(lambda m: ready.append("second"), lambda exc: ready.append("fail"))
    assert library.state == "loading"
    assert ready == []

    scheduler.run(0)

    assert ready == ["first", "second"]
    assert imports == [FAKE_MODULE_NAME]
    assert library.import_count == 1
    assert library.module is module

    library.acquire(lambda m: ready.append("third"), lambda exc: ready.append("fail"))
    assert ready[-1] == "third"
    assert imports == [FAKE_MODULE_NAME]


def test_joining_caller_times_out_while_import_is_in_flight() -> None:
    library, scheduler, _module, _imports = _make_library()
    results: list[object] = []

    library.acquire(lambda m: results.append("first-ready"), results.append)
    joined = library.acquire(
        lambda m: results.append("joined-ready"), results.append, timeout_ms=5000
    )

    scheduler.run(5000)

    assert isinstance(results[0], LoadError)
    assert joined.pending is False

    scheduler.run(0)
    assert results[1:] == ["first-ready"]


def test_failed_import_notifies_waiters_and_resets_for_retry() -> None:
    library, scheduler, _module, imports = _make_library(fail=True)
    failures: list[Exception] = []

    library.acquire(lambda m: None, failures.append)
    scheduler.run(0)

    assert len(failures) == 1
    assert isinstance(failures[0], LoadError)
    assert library.state == "idle"

    library.acquire(lambda m: None, failures.append)
    assert library.state == "loading"
    scheduler.run(0)
    assert imports == [FAKE_MODULE_NAME, FAKE_MODULE_NAME]


def test_cancelled_request_gets_no_callback() -> None:
    library, scheduler, _module, _imports = _make_library()
    calls: list[str] = []

    request = library.acquire(lambda m: calls.append("ready"), lambda exc: calls.append("fail"))
    assert request.pending is True
    request.cancel()
    scheduler.run(0)

    assert calls == []
    assert request.pending is False
    assert library.state == "loaded"
