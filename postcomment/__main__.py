"""Serve the API with uvicorn: ``python -m postcomment``."""

import uvicorn

from postcomment.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "postcomment.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.api_reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()
