# geopin/main.py
"""
geopin API application.

Serves the geocoding endpoints the listing form and map call from the
browser. Process bootstrap (uvicorn, workers) is left to the deployment.
"""

import logging

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import settings
from .errors import register_error_handlers
from .routes.v1 import addresses as addresses_v1

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Geocoding, address autocomplete and pin placement for listings",
        version=__version__,
        debug=settings.debug,
    )
    register_error_handlers(app)

    api = APIRouter(prefix="/api")
    api.include_router(addresses_v1.router)
    app.include_router(api)

    if settings.geocoding_provider == "geoapify" and not settings.geoapify_key_configured:
        logger.warning(
            "MAP_TOKEN not configured; geocoding endpoints will answer 500",
            extra={"event": "geocoding_unconfigured"},
        )
    return app


app = create_app()
