"""
Car Market entry point.

Run with:
    python main.py
"""

import uvicorn

from carmarket.core.config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(
        "carmarket_web.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
