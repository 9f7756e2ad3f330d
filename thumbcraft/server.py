# FILE: thumbcraft/server.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from thumbcraft.core.database import billing_engine, engine, init_models
from thumbcraft.core.errors import AppError, app_error_handler

from thumbcraft.api.root import router as root_router
from thumbcraft.api.auth import router as auth_router
from thumbcraft.api.thumbnails import router as thumbnails_router
from thumbcraft.api.images import router as images_router
from thumbcraft.api.credits import router as credits_router
from thumbcraft.api.payments import router as payments_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("thumbcraft.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info("Database ready")
    yield
    await engine.dispose()
    if billing_engine is not engine:
        await billing_engine.dispose()


app = FastAPI(title="Thumbcraft Studio API", lifespan=lifespan)

app.add_exception_handler(AppError, app_error_handler)

app.include_router(root_router)
app.include_router(auth_router)
app.include_router(thumbnails_router)
app.include_router(images_router)
app.include_router(credits_router)
app.include_router(payments_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)
