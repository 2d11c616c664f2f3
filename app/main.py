import uvicorn

from app.core.app_factory import create_app
from app.core.config import settings

app = create_app()


def run() -> None:
    """Serve the API with uvicorn on the configured host/port."""
    uvicorn.run(
        "app.main:app",
        host=settings.app.host,
        port=settings.app.port,
        reload=settings.is_development and settings.app.debug,
        log_config=None,
    )


if __name__ == "__main__":
    run()
