"""
Main entry point for running the lead CRM server.

The inbox poll scheduler starts with the application (see ``api.app``).
"""

import uvicorn
from config import settings


def main():
    """Start the CRM server."""
    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
