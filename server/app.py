from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from server.proxy import create_proxy_router
from server.routes import create_router


def create_app(entries, categories, settings, orchestrator, categorizer,
               reminders=None, transcriber=None) -> FastAPI:
    app = FastAPI(title="TimeScribe", version="0.1.0")

    router = create_router(
        entries, categories, settings, orchestrator, categorizer,
        reminders=reminders, transcriber=transcriber,
    )
    app.include_router(router, prefix="/api")

    return app


def create_proxy_app(categorizer) -> FastAPI:
    app = FastAPI(title="TimeScribe categorization proxy", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(create_proxy_router(categorizer))
    return app
