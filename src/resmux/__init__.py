from importlib.metadata import version

from .config import Config, Paths, Resource, validate_config
from .errors import ConfigurationError, ModuleResolutionError, ResmuxError
from .loader import load_resource
from .resolver import ImportResolver, MappingResolver, ModuleResolver
from .resources import build, register
from .router import Router, format_routes, http_route, path_params
from .routespec import RouteMeta, parse_route_spec

__all__ = [
    "Config",
    "ConfigurationError",
    "ImportResolver",
    "MappingResolver",
    "ModuleResolutionError",
    "ModuleResolver",
    "Paths",
    "Resource",
    "ResmuxError",
    "RouteMeta",
    "Router",
    "__version__",
    "build",
    "format_routes",
    "http_route",
    "load_resource",
    "parse_route_spec",
    "path_params",
    "register",
    "validate_config",
]

__version__ = version("resmux")
