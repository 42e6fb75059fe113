"""API server entry point for python -m omnipedia.api"""
import uvicorn

from omnipedia import configure_logging
from omnipedia.config import settings

if __name__ == "__main__":
    configure_logging()
    uvicorn.run(
        "omnipedia.api.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )
