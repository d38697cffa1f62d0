"""Server entry point for the learning material API.

Run with ``python -m src.main``; host and port come from ``API_HOST`` and
``API_PORT``.
"""

import os

from src.api.main import app

__all__ = ["app"]

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8030")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
    )
