"""Command line interface to run the Dear Stranger API server."""

import uvicorn

from .api import app
from .config import settings


def main() -> None:
    """Run the Uvicorn server hosting the API."""
    try:
        # Validate database configuration before starting the server
        settings.validate_storage_config()
    except ValueError as e:
        print(f"Configuration Error: {e}")
        print("Please check your environment variables and try again.")
        return

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
