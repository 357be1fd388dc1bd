from pathlib import Path

import pytest

from resmux.controllers import ControllerInstance
from resmux.errors import ModuleResolutionError
from resmux.middleware import resolve_middleware
from resmux.resolver import ImportResolver, MappingResolver, join_path
from resmux.types import ASGIApp


@pytest.mark.parametrize(
    "base,name,expected",
    [
        ("./ctrl/users", "Users", "./ctrl/users/Users"),
        ("./ctrl/users/", "Users", "./ctrl/users/Users"),
        ("./ctrl/", "Users", "./ctrl/Users"),
        ("app.controllers.", "Users", "app.controllers.Users"),
        ("", "Users", "Users"),
    ],
)
def test_join_path(base: str, name: str, expected: str) -> None:
    assert join_path(base, name) == expected


# --- MappingResolver ----------------------------------------------------------
def test_mapping_resolver() -> None:
    marker = object()
    resolver = MappingResolver({"./ctrl/Users": marker})
    assert resolver.resolve("./ctrl/Users") is marker
    with pytest.raises(ModuleResolutionError) as exc_info:
        resolver.resolve("./ctrl/Posts")
    assert exc_info.value.name == "./ctrl/Posts"


# --- ImportResolver: files ----------------------------------------------------
@pytest.fixture
def app_dir(tmp_path: Path) -> Path:
    (tmp_path / "ctrl" / "users").mkdir(parents=True)
    (tmp_path / "ctrl" / "users" / "Users.py").write_text(
        "class Users:\n"
        "    async def show(self, scope, receive, send):\n"
        "        pass\n"
    )
    (tmp_path / "ctrl" / "helpers.py").write_text(
        "async def ping(scope, receive, send):\n    pass\n"
    )
    (tmp_path / "ctrl" / "pkg").mkdir()
    (tmp_path / "ctrl" / "pkg" / "__init__.py").write_text("class pkg:\n    pass\n")
    return tmp_path


def test_file_export_named_after_module(app_dir: Path) -> None:
    export = ImportResolver(app_dir).resolve("./ctrl/users/Users")
    assert isinstance(export, type)
    assert export.__name__ == "Users"


def test_file_export_falls_back_to_module(app_dir: Path) -> None:
    export = ImportResolver(app_dir).resolve("./ctrl/helpers.py")
    assert callable(export.ping)


def test_file_directory_package(app_dir: Path) -> None:
    export = ImportResolver(app_dir).resolve("ctrl/pkg")
    assert export.__name__ == "pkg"


def test_file_loaded_once(app_dir: Path) -> None:
    resolver = ImportResolver(app_dir)
    assert resolver.resolve("./ctrl/users/Users") is resolver.resolve(
        "ctrl/users/../users/Users"
    )


def test_file_missing(app_dir: Path) -> None:
    with pytest.raises(ModuleResolutionError, match="does not exist"):
        ImportResolver(app_dir).resolve("./ctrl/users/Posts")


def test_file_relative_to_cwd(app_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(app_dir)
    assert ImportResolver().resolve("./ctrl/users/Users").__name__ == "Users"


# --- ImportResolver: dotted paths ---------------------------------------------
@pytest.fixture
def dotted_app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    package = tmp_path / "resmux_testapp"
    (package / "controllers").mkdir(parents=True)
    (package / "__init__.py").write_text("")
    (package / "controllers" / "__init__.py").write_text("")
    (package / "controllers" / "users.py").write_text(
        "class Users:\n    def index(self):\n        pass\n\nclass Posts:\n    pass\n"
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    return tmp_path


def test_dotted_attribute(dotted_app: Path) -> None:
    export = ImportResolver().resolve("resmux_testapp.controllers.users.Users")
    assert export.__name__ == "Users"


def test_dotted_module_export(dotted_app: Path) -> None:
    """A module without an attribute named after it exports itself."""
    export = ImportResolver().resolve("resmux_testapp.controllers.users")
    assert export.__name__ == "resmux_testapp.controllers.users"


def test_dotted_collapses_empty_segments(dotted_app: Path) -> None:
    export = ImportResolver().resolve("resmux_testapp.controllers..users.Posts")
    assert export.__name__ == "Posts"


@pytest.mark.parametrize(
    "name",
    [
        "resmux_testapp.controllers.users.Missing",
        "resmux_testapp.nothing.Users",
        "resmux_nothing",
        "..",
    ],
)
def test_dotted_missing(dotted_app: Path, name: str) -> None:
    with pytest.raises(ModuleResolutionError):
        ImportResolver().resolve(name)


# --- Controllers --------------------------------------------------------------
def test_controller_factory_called() -> None:
    class Users:
        def show(self) -> str:
            return "show"

    controller = ControllerInstance.from_export(Users)
    assert isinstance(controller.instance, Users)
    assert controller.action("show")() == "show"


def test_controller_object_used_as_is() -> None:
    class Namespace:
        show = staticmethod(lambda: "show")

    controller = ControllerInstance.from_export(Namespace())
    assert controller.action("show")() == "show"


@pytest.mark.parametrize("name", ["missing", "", None])
def test_controller_missing_action(name: str | None) -> None:
    controller = ControllerInstance.from_export(object())
    assert controller.action(name) is None


# --- Middleware ---------------------------------------------------------------
def test_resolve_middleware_empty() -> None:
    resolver = MappingResolver({})
    assert resolve_middleware(None, "./mw/", resolver) == ()
    assert resolve_middleware([], "./mw/", resolver) == ()


def test_resolve_middleware_keeps_order() -> None:
    def inline(handler: ASGIApp) -> ASGIApp:
        return handler

    def auth(handler: ASGIApp) -> ASGIApp:
        return handler

    def audit(handler: ASGIApp) -> ASGIApp:
        return handler

    resolver = MappingResolver({"./mw/auth": auth, "./mw/audit": audit})
    assert resolve_middleware(["auth", inline, "audit"], "./mw", resolver) == (
        auth,
        inline,
        audit,
    )


def test_resolve_middleware_missing_module() -> None:
    with pytest.raises(ModuleResolutionError) as exc_info:
        resolve_middleware(["auth"], "./mw/", MappingResolver({}))
    assert exc_info.value.name == "./mw/auth"


def test_resolve_middleware_without_base_path() -> None:
    with pytest.raises(ModuleResolutionError, match="no middleware path"):
        resolve_middleware(["auth"], None, MappingResolver({"auth": object()}))
