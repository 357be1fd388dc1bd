"""Route middleware resolution.

Middleware are handler wrappers, ``Callable[[ASGIApp], ASGIApp]``. A route's
middleware list may mix callables with names of modules under the configured
middleware path.
"""

from collections.abc import Sequence
from typing import cast

from resmux.config import MiddlewareRef
from resmux.errors import ModuleResolutionError
from resmux.resolver import ModuleResolver, join_path
from resmux.types import ASGIApp, Middleware

__all__ = ["resolve_middleware"]


def resolve_middleware(
    refs: Sequence[MiddlewareRef] | None,
    base_path: str | None,
    resolver: ModuleResolver,
) -> tuple[Middleware[ASGIApp], ...]:
    """Resolve a route's middleware list, keeping its order.

    Callables pass through unchanged, anything else is resolved at
    ``base_path`` joined with the reference.

    Raises:
        ModuleResolutionError: If a reference can't be resolved.
    """
    if not refs:
        return ()

    resolved: list[Middleware[ASGIApp]] = []
    for ref in refs:
        if callable(ref):
            resolved.append(ref)
            continue
        if base_path is None:
            msg = f"cannot resolve middleware {ref!r}: no middleware path configured"
            raise ModuleResolutionError(str(ref), msg)
        resolved.append(
            cast("Middleware[ASGIApp]", resolver.resolve(join_path(base_path, ref)))
        )
    return tuple(resolved)
