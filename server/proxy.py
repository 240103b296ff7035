import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from processing.categorizer import Categorizer, ConfigurationMissing
from server.schemas import CategorizeRequest

logger = logging.getLogger(__name__)


def create_proxy_router(categorizer: Categorizer) -> APIRouter:
    router = APIRouter()

    @router.get("/")
    def root():
        return {"status": "ok", "service": "time-tracking-api"}

    @router.get("/health")
    def health():
        return {"status": "healthy"}

    @router.post("/categorize")
    def categorize(body: CategorizeRequest):
        try:
            return categorizer.categorize(
                body.transcript,
                body.defaultDurationMinutes,
                [c.model_dump() for c in body.categories],
            )
        except ConfigurationMissing as e:
            logger.error("Proxy sin configurar: %s", e)
            return JSONResponse(
                status_code=500,
                content={"error": str(e), "code": "CONFIGURATION_MISSING"},
            )
        except Exception as e:
            logger.error("Error categorizando: %s", e)
            return JSONResponse(
                status_code=500,
                content={"error": str(e) or "Failed to categorize transcript", "code": "CATEGORIZE_ERROR"},
            )

    @router.post("/test-connection")
    def test_connection():
        return {"success": categorizer.test_connection()}

    return router
