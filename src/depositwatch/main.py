"""depositwatch - main application entry point."""

import uvicorn

from depositwatch.api.app import create_app
from depositwatch.config import get_settings

app = create_app()


def main() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "depositwatch.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
