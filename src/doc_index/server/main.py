# doc_index/server/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from doc_index import create_doc_index
from doc_index.client import DocIndexClient
from doc_index.config import DocIndexConfig, get_settings
from doc_index.notify.telegram import TelegramNotifier
from . import auth, files, telegram
from .errors import install_error_handlers

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[DocIndexConfig] = None,
    client: Optional[DocIndexClient] = None,
    notifier: Optional[TelegramNotifier] = None,
) -> FastAPI:
    """
    Builds the API. Without arguments everything comes from the environment;
    tests pass a prepared config and client.
    """
    if config is None:
        config = get_settings().to_config()
    owns_client = client is None
    if client is None:
        client = create_doc_index(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("doc-index API starting")
        yield
        if owns_client:
            await client.aclose()
        logger.info("doc-index API stopped")

    app = FastAPI(title="doc-index", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.client = client
    app.state.notifier = notifier or TelegramNotifier(config.telegram)

    install_error_handlers(app)

    app.include_router(auth.router, prefix="/api")
    app.include_router(files.router, prefix="/api")
    app.include_router(telegram.router, prefix="/api")
    return app
