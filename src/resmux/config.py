"""Resource configuration document and its validation.

A configuration document is a plain mapping, as it would come out of JSON:

    {
        "paths": {"controllers": "app/controllers/*/", "middleware": "app/middleware/"},
        "resources": [
            {
                "mount": "/users",
                "module": "accounts",
                "routes": {
                    "get / Users@index": None,
                    "get /:id Users@show": ["auth"],
                },
            },
        ],
        "caseSensitive": False,
        "mergeParams": False,
        "strict": False,
        "preferMountPathMatch": False,
    }

``validate_config`` checks it once and turns it into frozen dataclasses that
are passed explicitly to every loader call.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import ConfigurationError

type MiddlewareRef = str | Callable[..., Any]
type RouteEntry = tuple[str, tuple[MiddlewareRef, ...] | None]

_OPTIONS = {
    "prefer_mount_path_match": "preferMountPathMatch",
    "case_sensitive": "caseSensitive",
    "merge_params": "mergeParams",
    "strict": "strict",
}


@dataclass(slots=True, frozen=True)
class Paths:
    controllers: str  # template with a "*" placeholder for the resource module
    middleware: str | None = None


@dataclass(slots=True, frozen=True)
class Resource:
    """A mountable group of routes sharing a URL prefix.

    ``routes`` is ordered: routes are registered in this order.
    """

    mount: str = "/"
    module: str = ""
    routes: tuple[RouteEntry, ...] = field(default=())


@dataclass(slots=True, frozen=True)
class Config:
    paths: Paths
    resources: tuple[Resource, ...]
    prefer_mount_path_match: bool = False
    case_sensitive: bool = False
    merge_params: bool = False
    strict: bool = False


def validate_config(document: Mapping[str, Any] | Config | None) -> Config:
    """Validate a configuration document and apply option defaults.

    Checks, in order: the document itself, that it is a mapping, ``paths``,
    ``paths.controllers`` and ``resources``.

    Raises:
        ConfigurationError: On the first missing or malformed field.
    """
    if document is None or (not document and not isinstance(document, Mapping)):
        msg = "configuration required"
        raise ConfigurationError("config", msg)
    if isinstance(document, Config):
        return document
    if not isinstance(document, Mapping):
        msg = f"configuration should be a mapping, got {type(document).__name__}"
        raise ConfigurationError("config", msg, "invalid_type")

    paths = document.get("paths")
    if paths is None:
        msg = "configuration paths required"
        raise ConfigurationError("paths", msg)
    if not isinstance(paths, Mapping):
        msg = "configuration paths should be a mapping"
        raise ConfigurationError("paths", msg, "invalid_type")

    controllers = paths.get("controllers")
    if not controllers:
        msg = "configuration paths controllers required"
        raise ConfigurationError("paths.controllers", msg)
    if not isinstance(controllers, str):
        msg = "configuration paths controllers should be a string"
        raise ConfigurationError("paths.controllers", msg, "invalid_type")

    resources = document.get("resources")
    if resources is None:
        msg = "configuration resources required"
        raise ConfigurationError("resources", msg)
    if isinstance(resources, (str, bytes, Mapping)) or not isinstance(
        resources, Sequence
    ):
        msg = "configuration resources should be a sequence"
        raise ConfigurationError("resources", msg, "invalid_type")

    middleware = paths.get("middleware")
    if middleware is None:
        middleware = paths.get("middlewares")

    return Config(
        paths=Paths(controllers=controllers, middleware=middleware),
        resources=tuple(
            _resource(item, f"resources[{i}]") for i, item in enumerate(resources)
        ),
        **{name: _option(document, name) for name in _OPTIONS},
    )


def _option(document: Mapping[str, Any], name: str) -> bool:
    value = document.get(_OPTIONS[name])
    if value is None:
        value = document.get(name)
    return bool(value)


def _resource(item: Mapping[str, Any] | Resource, where: str) -> Resource:
    if isinstance(item, Resource):
        return item
    if not isinstance(item, Mapping):
        msg = f"configuration {where} should be a mapping"
        raise ConfigurationError(where, msg, "invalid_type")
    return Resource(
        mount=item.get("mount") or "/",
        module=item.get("module") or "",
        routes=_routes(item.get("routes"), f"{where}.routes"),
    )


def _routes(routes: Any, where: str) -> tuple[RouteEntry, ...]:
    if not routes:
        return ()
    pairs = routes.items() if isinstance(routes, Mapping) else routes
    entries: list[RouteEntry] = []
    for pair in pairs:
        try:
            spec, middleware = pair
        except (TypeError, ValueError) as e:
            msg = f"configuration {where} should map route specs to middleware lists"
            raise ConfigurationError(where, msg, "invalid_type") from e
        if middleware is not None:
            if isinstance(middleware, (str, bytes)) or callable(middleware):
                middleware = (middleware,)
            middleware = tuple(middleware)
        entries.append((spec, middleware))
    return tuple(entries)
