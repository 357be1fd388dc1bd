"""Declarative resource routing middleware.

Usage:

    app = Router()
    app.use(build(config))

On a request the middleware mounts a router per configured resource on the
application found in ``scope["app"]`` and then hands the request on, so the
freshly mounted routes already serve it.

By default a resource is mounted at most once per application. With
``per_request=True`` every request mounts every (matching) resource again,
which grows the application's route table by one copy per request; that mode
exists for compatibility with route tables that depend on being rebuilt, e.g.
controllers that keep per-request state.
"""

import logging
import weakref
from collections.abc import Mapping
from typing import Any

from .config import Config, validate_config
from .loader import load_resource
from .resolver import ImportResolver, ModuleResolver
from .router import Router
from .types import ASGIApp, Middleware, Receive, Scope, Send

logger = logging.getLogger(__name__)


def build(
    config: Mapping[str, Any] | Config,
    *,
    resolver: ModuleResolver | None = None,
    per_request: bool = False,
) -> Middleware[ASGIApp]:
    """Create the resource routing middleware.

    The configuration is validated here, once.

    Args:
        config: Configuration document, see ``resmux.config``.
        resolver: Resolves controller and middleware names. Defaults to an
            ``ImportResolver`` rooted at the current directory.
        per_request: Mount resources again on every request instead of once
            per application.

    Raises:
        ConfigurationError: If the configuration is missing a required field.
    """
    conf = validate_config(config)
    resolver = resolver if resolver is not None else ImportResolver()
    # app -> indexes of resources already mounted on it
    mounted: weakref.WeakKeyDictionary[Router, set[int]] = weakref.WeakKeyDictionary()

    def middleware(handler: ASGIApp) -> ASGIApp:
        async def resource_handler(scope: Scope, receive: Receive, send: Send) -> None:
            if scope["type"] in ("http", "websocket"):
                app: Router = scope["app"]
                done = mounted.setdefault(app, set())
                for i, resource in enumerate(conf.resources):
                    if conf.prefer_mount_path_match and scope["path"] != resource.mount:
                        continue
                    if not per_request and i in done:
                        continue
                    load_resource(conf, app, resource, resolver)
                    done.add(i)
            await handler(scope, receive, send)

        return resource_handler

    return middleware


def register(
    app: Router,
    config: Mapping[str, Any] | Config,
    *,
    resolver: ModuleResolver | None = None,
) -> list[Router]:
    """Mount every resource on app immediately, e.g. at start-up.

    Raises:
        ConfigurationError: If the configuration is missing a required field.
        ModuleResolutionError: If a controller or middleware can't be resolved.
    """
    conf = validate_config(config)
    resolver = resolver if resolver is not None else ImportResolver()
    routers = [
        load_resource(conf, app, resource, resolver) for resource in conf.resources
    ]
    logger.info("registered %d resources", len(routers))
    return routers
