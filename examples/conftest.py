"""Pytest wiring for the waypoint examples.

Each example directory holds an ``app.py`` next to its ``test_app.py``.
``example_module`` executes that app.py under a fresh module name for
every test, so sessions and dispatchers never leak between tests.
"""

import importlib.util
import itertools
import sys
from pathlib import Path
from types import ModuleType

import pytest

_loads = itertools.count()


def load_example(directory: Path) -> ModuleType:
    """Execute ``directory/app.py`` and register it in ``sys.modules``.

    Registration lets ``typing.get_type_hints`` resolve the example's
    payload dataclasses while its typed plugins decode.
    """
    path = directory / "app.py"
    name = f"waypoint_example_{directory.name}_{next(_loads)}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        msg = f"Cannot load example app from {path}"
        raise ImportError(msg)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[name]
        raise
    return module


@pytest.fixture
def example_module(request: pytest.FixtureRequest):
    module = load_example(Path(request.path).parent)
    yield module
    sys.modules.pop(module.__name__, None)
