"""ASGI entry point: ``uvicorn shoptrack.main:app``."""

from prometheus_fastapi_instrumentator import Instrumentator

from shoptrack import create_app
from shoptrack.core.config import settings
from shoptrack.core.logging import configure_logging

configure_logging()
app = create_app()
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app)


def run() -> None:
    import uvicorn

    uvicorn.run("shoptrack.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
