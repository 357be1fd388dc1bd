"""In-memory user store.

There is no ``destroy`` action: DELETE /users/:id runs its middleware and then
answers not found.
"""

import json

from resmux import path_params
from resmux.types import Receive, Scope, Send

_users: dict[str, dict[str, str]] = {"1": {"id": "1", "name": "ada"}}


async def _json(send: Send, status: int, data: object) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": status,
            "headers": [(b"content-type", b"application/json")],
        }
    )
    await send({"type": "http.response.body", "body": json.dumps(data).encode()})


class Users:
    async def index(self, scope: Scope, receive: Receive, send: Send) -> None:
        await _json(send, 200, list(_users.values()))

    async def show(self, scope: Scope, receive: Receive, send: Send) -> None:
        user = _users.get(path_params.get()["id"])
        if user is None:
            await _json(send, 404, {"error": "not found"})
            return
        await _json(send, 200, user)

    async def create(self, scope: Scope, receive: Receive, send: Send) -> None:
        body = b""
        while True:
            message = await receive()
            body += message.get("body", b"")
            if not message.get("more_body"):
                break
        try:
            name = json.loads(body)["name"]
        except (json.JSONDecodeError, KeyError, TypeError):
            await _json(send, 400, {"error": "expected {\"name\": ...}"})
            return
        user_id = str(len(_users) + 1)
        _users[user_id] = {"id": user_id, "name": name}
        await _json(send, 201, _users[user_id])
