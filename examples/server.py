# /// script
# requires-python = ">=3.14"
# dependencies = [
#     "resmux @ file:///${PROJECT_ROOT}/../resmux",
#     "granian[uvloop]>=2.6.0,<3.0.0",
# ]
# ///
"""ASGI server demo.

Resource routes declared as data, served by Granian. Controllers and middleware
are loaded from ``app/`` next to this file.
"""

import asyncio
import logging
from pathlib import Path

from granian.constants import Interfaces
from granian.server.embed import Server

from resmux import ImportResolver, Router, build, format_routes
from resmux.types import Receive, Scope, Send

ADDRESS = "127.0.0.1"
PORT = 8000

CONFIG = {
    "paths": {
        "controllers": "app/controllers/*/",
        "middleware": "app/middleware/",
    },
    "resources": [
        {
            "mount": "/users",
            "module": "accounts",
            "routes": {
                "get / Users@index": None,
                "post / Users@create": ["auth"],
                "get /:id Users@show": None,
                "delete /:id Users@destroy": ["auth"],
            },
        },
    ],
}


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    router = Router()
    router.not_found(not_found)
    router.get("/", home)
    router.use(build(CONFIG, resolver=ImportResolver(Path(__file__).parent)))

    server = Server(
        router, address=ADDRESS, port=PORT, interface=Interfaces.ASGI, log_access=True
    )
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass


async def home(scope: Scope, receive: Receive, send: Send) -> None:
    body = format_routes(scope["app"]).encode()
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        }
    )
    await send({"type": "http.response.body", "body": body})


async def not_found(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 404,
            "headers": [(b"content-type", b"text/plain")],
        }
    )
    await send({"type": "http.response.body", "body": b"Not found"})


if __name__ == "__main__":
    asyncio.run(main())
