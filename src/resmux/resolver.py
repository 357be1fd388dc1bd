"""Name to object resolution for controllers and middleware.

Names are built by concatenating a configured base path with a name from the
route table, so they look either like file paths (``./app/controllers/Users``)
or like dotted import paths (``app.controllers.users.Users``).
"""

import importlib
import importlib.util
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from .errors import ModuleResolutionError

logger = logging.getLogger(__name__)


class ModuleResolver(Protocol):
    def resolve(self, name: str) -> Any:
        """Return the object exported under name.

        Raises:
            ModuleResolutionError: If nothing can be found under name.
        """
        ...


def join_path(base: str, name: str) -> str:
    """Join a base path and a name, inserting ``/`` unless base ends in a separator.

        >>> join_path("./ctrl/users", "Users")
        './ctrl/users/Users'
        >>> join_path("app.controllers.", "Users")
        'app.controllers.Users'
    """
    if not base or base.endswith(("/", ".")):
        return base + name
    return f"{base}/{name}"


def module_export(module: Any, name: str) -> Any:
    """The attribute named after the module's last segment, or the module itself."""
    return getattr(module, name, module)


class MappingResolver:
    """Resolves names from an in-memory mapping."""

    __slots__ = ("_objects",)

    def __init__(self, objects: Mapping[str, Any]) -> None:
        self._objects = dict(objects)

    def resolve(self, name: str) -> Any:
        try:
            return self._objects[name]
        except KeyError:
            raise ModuleResolutionError(name) from None


class ImportResolver:
    """Resolves file paths and dotted import paths to module exports.

    File paths (anything containing ``/`` or ending in ``.py``) are relative to
    root and loaded once per absolute path; a directory resolves to its
    ``__init__.py``. Dotted paths go through the regular import system; when
    the full path is not a module its last segment is read as an attribute of
    the parent module.
    """

    __slots__ = ("_cache", "_root")

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root) if root is not None else None
        self._cache: dict[Path, Any] = {}

    def resolve(self, name: str) -> Any:
        if "/" in name or name.endswith(".py"):
            return self._resolve_file(name)
        return self._resolve_dotted(name)

    def _resolve_file(self, name: str) -> Any:
        root = self._root if self._root is not None else Path.cwd()
        path = (root / name).resolve()
        if path.is_dir():
            path = path / "__init__.py"
        elif path.suffix != ".py":
            path = path.with_name(path.name + ".py")
        if path in self._cache:
            return self._cache[path]
        if not path.is_file():
            msg = f"cannot resolve module '{name}': {path} does not exist"
            raise ModuleResolutionError(name, msg)

        module_name = path.parent.name if path.name == "__init__.py" else path.stem
        spec = importlib.util.spec_from_file_location(
            f"resmux.loaded.{module_name}_{abs(hash(path)):x}", path
        )
        if spec is None or spec.loader is None:
            msg = f"cannot resolve module '{name}': {path} is not loadable"
            raise ModuleResolutionError(name, msg)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        logger.debug("loaded %s from %s", name, path)

        export = module_export(module, module_name)
        self._cache[path] = export
        return export

    def _resolve_dotted(self, name: str) -> Any:
        dotted = ".".join(part for part in name.split(".") if part)
        if not dotted:
            raise ModuleResolutionError(name)
        try:
            module = importlib.import_module(dotted)
        except ModuleNotFoundError as e:
            if e.name != dotted or "." not in dotted:
                raise ModuleResolutionError(name, str(e)) from e
        else:
            return module_export(module, dotted.rpartition(".")[2])

        module_path, _, attr = dotted.rpartition(".")
        try:
            module = importlib.import_module(module_path)
        except ModuleNotFoundError as e:
            raise ModuleResolutionError(name, str(e)) from e
        try:
            return getattr(module, attr)
        except AttributeError:
            msg = f"cannot resolve module '{name}': {module_path} has no {attr!r}"
            raise ModuleResolutionError(name, msg) from None
