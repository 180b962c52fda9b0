"""Import scenario files from disk."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType

from explorerload._internal.errors import ScenarioError
from explorerload._internal.logging import get_logger
from explorerload.dsl.scenario import ScenarioDefinition

logger = get_logger("dsl.loader")


def _check_path(path: Path) -> None:
    if not path.exists():
        msg = f"Scenario file not found: {path}"
        raise ScenarioError(msg)
    if path.suffix != ".py":
        msg = f"Scenario file must be a .py file, got: {path}"
        raise ScenarioError(msg)


def _exec_file(path: Path, module_name: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        msg = f"Cannot build an import spec for {path}"
        raise ScenarioError(msg)

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        del sys.modules[module_name]
        msg = f"Failed to import scenario file {path}: {exc}"
        raise ScenarioError(msg) from exc
    return module


def load_scenario(file_path: str | Path) -> ScenarioDefinition:
    """Import *file_path* and return the scenario it declares.

    Module-level code runs as part of the import, so custom metrics the
    file declares (``Counter("Error HTTP")`` and friends) exist in the
    metric registry once this returns. If the file declares more than one
    scenario the first is used and a warning is logged.

    Raises:
        ScenarioError: If the path is missing or not ``.py``, the import
            raises, or the module holds no ``@scenario`` class.
    """
    path = Path(file_path)
    _check_path(path)

    module_name = f"explorerload_scenario_{path.stem}"
    module = _exec_file(path, module_name)

    found = [value for value in vars(module).values() if isinstance(value, ScenarioDefinition)]
    if not found:
        del sys.modules[module_name]
        msg = f"No @scenario-decorated class found in {path}"
        raise ScenarioError(msg)

    chosen = found[0]
    if len(found) > 1:
        logger.warning("%s defines %d scenarios, using %r", path, len(found), chosen.name)
    logger.debug("Loaded scenario %r from %s", chosen.name, path)
    return chosen
