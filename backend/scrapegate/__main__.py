"""Standalone metric server: ``python -m scrapegate``."""

import uvicorn

from scrapegate.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "scrapegate.main:create_app",
        factory=True,
        host=settings.metrics_host,
        port=settings.metrics_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
