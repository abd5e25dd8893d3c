"""FunRun - Main application entry point."""

import uvicorn

from funrun.api.app import create_app
from funrun.config import get_settings

app = create_app()


def run() -> None:
    """Run the API server with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "funrun.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
