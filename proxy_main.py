import logging

import uvicorn

import config
from processing.categorizer import Categorizer
from server.app import create_proxy_app

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("timescribe.proxy")


def main():
    api_key = config.provider_api_key("gemini")
    if not api_key:
        logger.warning("GEMINI_API_KEY no configurada: /categorize respondera con error")

    categorizer = Categorizer(
        provider="gemini",
        api_key=api_key,
        model=config.GEMINI_MODEL,
        timeout=config.LLM_TIMEOUT_SECS,
    )
    app = create_proxy_app(categorizer)

    logger.info("Proxy de categorizacion en http://%s:%d", config.PROXY_HOST, config.PROXY_PORT)
    logger.info("Health check: http://localhost:%d/health", config.PROXY_PORT)
    uvicorn.run(app, host=config.PROXY_HOST, port=config.PROXY_PORT, log_level="info")


if __name__ == "__main__":
    main()
