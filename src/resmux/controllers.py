"""Controller exports normalized into instances with named actions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class ControllerInstance:
    """A resolved controller.

    A callable export (usually a class) is a factory and is called once per
    route entry; anything else, such as a module of handler functions, is used
    as the instance directly.
    """

    instance: Any

    @classmethod
    def from_export(cls, export: Any) -> ControllerInstance:
        return cls(export() if callable(export) else export)

    def action(self, name: str | None) -> Any | None:
        """The member called name, or None when it is missing."""
        if not name:
            return None
        return getattr(self.instance, name, None)
