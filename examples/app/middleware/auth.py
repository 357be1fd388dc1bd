"""Rejects requests without an ``authorization`` header."""

from resmux.types import ASGIApp, Receive, Scope, Send


def auth(handler: ASGIApp) -> ASGIApp:
    async def auth_handler(scope: Scope, receive: Receive, send: Send) -> None:
        if not any(k == b"authorization" for k, _ in scope.get("headers", ())):
            await send(
                {
                    "type": "http.response.start",
                    "status": 401,
                    "headers": [(b"content-type", b"text/plain")],
                }
            )
            await send({"type": "http.response.body", "body": b"Unauthorized"})
            return
        await handler(scope, receive, send)

    return auth_handler
