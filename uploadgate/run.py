"""``uploadgate`` console script: serve uploadgate.main:app under uvicorn.

Host and port come from load_config(). Connection handling is fixed:
at most 100 concurrent connections (uvicorn answers 503 past that), a
listen backlog of 50 and a 5 second keep-alive.
"""

from __future__ import annotations

import uvicorn

from uploadgate.config import load_config

UVICORN_LIMIT_CONCURRENCY: int = 100
UVICORN_BACKLOG: int = 50
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    config = load_config()
    uvicorn.run(
        "uploadgate.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
