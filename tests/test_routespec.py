import pytest

from resmux.routespec import RouteMeta, parse_route_spec


@pytest.mark.parametrize(
    "spec,expected",
    [
        ("get /:name users@hello", RouteMeta("get", "/:name", "users", "hello")),
        ("POST / Users@Create", RouteMeta("POST", "/", "Users", "Create")),
        ("delete /a/b/c admin/Users@destroy", RouteMeta("delete", "/a/b/c", "admin/Users", "destroy")),
    ],
)
def test_well_formed(spec: str, expected: RouteMeta) -> None:
    assert parse_route_spec(spec) == expected


def test_no_trimming() -> None:
    """A doubled space shifts the tokens instead of being collapsed."""
    assert parse_route_spec("get  /x C@a") == RouteMeta("get", "", "/x", None)


@pytest.mark.parametrize(
    "spec,expected",
    [
        ("", RouteMeta("", None, None, None)),
        ("get", RouteMeta("get", None, None, None)),
        ("get /x", RouteMeta("get", "/x", None, None)),
        ("get /x Users", RouteMeta("get", "/x", "Users", None)),
        ("get /x Users@", RouteMeta("get", "/x", "Users", "")),
        ("get /x @show", RouteMeta("get", "/x", "", "show")),
    ],
)
def test_malformed_does_not_raise(spec: str, expected: RouteMeta) -> None:
    assert parse_route_spec(spec) == expected


def test_extra_tokens_ignored() -> None:
    assert parse_route_spec("get /x A@b@c trailing") == RouteMeta("get", "/x", "A", "b")
