"""Per-resource route registration."""

import logging

from .config import Config, Resource
from .controllers import ControllerInstance
from .errors import ModuleResolutionError
from .middleware import resolve_middleware
from .resolver import ModuleResolver, join_path
from .router import Router
from .routespec import parse_route_spec

logger = logging.getLogger(__name__)


def load_resource(
    config: Config,
    app: Router,
    resource: Resource,
    resolver: ModuleResolver,
) -> Router:
    """Build a router for resource and mount it on app at ``resource.mount``.

    Every route entry gets a fresh controller instance. When the controller has
    no member named by the route's action the route is still registered, with
    its middleware and no handler.

    Routes registered before a failing entry are not rolled back, and neither
    are resources mounted earlier.

    Raises:
        ModuleResolutionError: If a controller or middleware can't be resolved,
            including for route specs missing their controller.
        ValueError: If a route spec names an unsupported verb or a path that
            doesn't start with ``/``.
    """
    router = Router(
        case_sensitive=config.case_sensitive,
        merge_params=config.merge_params,
        strict=config.strict,
    )
    controllers_path = config.paths.controllers.replace("*", resource.module)

    for spec, middleware_refs in resource.routes:
        meta = parse_route_spec(spec)
        if meta.controller is None:
            msg = f"cannot resolve controller for route {spec!r}"
            raise ModuleResolutionError(spec, msg)

        controller = ControllerInstance.from_export(
            resolver.resolve(join_path(controllers_path, meta.controller))
        )
        middleware = resolve_middleware(
            middleware_refs, config.paths.middleware, resolver
        )

        handler = controller.action(meta.action)
        if handler is None:
            logger.warning(
                "%s has no action %r, registering %s %s without a handler",
                meta.controller,
                meta.action,
                meta.type,
                meta.url,
            )
        router.method(meta.type, meta.url, handler, middleware)

    app.mount(resource.mount, router)
    logger.info(
        "mounted resource %s (%d routes)", resource.mount, len(resource.routes)
    )
    return router
