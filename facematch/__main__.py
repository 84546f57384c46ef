"""Run the API with uvicorn."""

from __future__ import annotations

import uvicorn

from facematch.config.settings import get_settings
from facematch.monitoring.logging import configure_logging


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        "facematch.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
