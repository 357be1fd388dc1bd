"""Route spec strings: ``"<verb> <path> <Controller>@<action>"``."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class RouteMeta:
    type: str
    url: str | None
    controller: str | None
    action: str | None


def parse_route_spec(spec: str) -> RouteMeta:
    """Split a route spec into verb, url, controller and action.

    The parse is permissive: tokens are split on single spaces without trimming
    or case changes, and missing tokens come back as None instead of raising.
    A malformed spec therefore fails later, when its controller is resolved or
    its verb registered.

        >>> parse_route_spec("get /:name Users@hello")
        RouteMeta(type='get', url='/:name', controller='Users', action='hello')
    """
    tokens = spec.split(" ")
    verb = tokens[0]
    url = tokens[1] if len(tokens) > 1 else None
    controller = action = None
    if len(tokens) > 2:
        target = tokens[2].split("@")
        controller = target[0]
        action = target[1] if len(target) > 1 else None
    return RouteMeta(type=verb, url=url, controller=controller, action=action)
