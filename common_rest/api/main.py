"""ASGI entrypoint: `uvicorn common_rest.api.main:app`."""

from __future__ import annotations

import uvicorn

from common_rest.api.app import create_app

app = create_app()


def run() -> None:
    config = app.state.config
    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    run()
