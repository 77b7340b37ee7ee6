# main.py
# Description: The FastAPI application for the PKM sync server.
#
# Imports
import logging
import sys
from contextlib import asynccontextmanager
#
# 3rd-party Libraries
from loguru import logger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.staticfiles import StaticFiles
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import close_all_pkm_db_instances
from pkm_Server_API.app.api.v1.API_Deps.v1_endpoint_deps import limiter
from pkm_Server_API.app.core.config import settings, ALLOWED_ORIGINS
#
# Auth Endpoint
from pkm_Server_API.app.api.v1.endpoints.auth import router as auth_router
#
# Checklist Endpoint
from pkm_Server_API.app.api.v1.endpoints.checklists import router as checklists_router
#
# Graph Endpoint
from pkm_Server_API.app.api.v1.endpoints.graphs import router as graphs_router
#
# Image Endpoint
from pkm_Server_API.app.api.v1.endpoints.images import router as images_router
#
# Notes Endpoint
from pkm_Server_API.app.api.v1.endpoints.notes import router as notes_router
#
# Sync Endpoint
from pkm_Server_API.app.api.v1.endpoints.sync import router as sync_router
#
########################################################################################################################
#
# Functions:


# --- Loguru Configuration with Intercept Handler ---

# Define a handler class to intercept standard logging messages
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    level=settings["LOG_LEVEL"],
    format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    colorize=True,
)

# The DB layer logs through the standard library
loggers_to_intercept = ["uvicorn", "uvicorn.error", "uvicorn.access", "pkm_Server_API.app.core.DB_Management"]
for logger_name in loggers_to_intercept:
    mod_logger = logging.getLogger(logger_name)
    mod_logger.handlers = [InterceptHandler()]
    mod_logger.propagate = False
    mod_logger.setLevel(settings["LOG_LEVEL"])

logger.info(f"Loguru logger configured (level {settings['LOG_LEVEL']}, mode {settings['APP_MODE_STR']}).")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("App Shutdown: Closing DB connections")
    close_all_pkm_db_instances()


app = FastAPI(
    title="PKM Sync API",
    version="0.1.0",
    description="Graphs, notes, checklists and images with incremental sync",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Use configured origins
origins = ALLOWED_ORIGINS if ALLOWED_ORIGINS else ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uploaded images are public by URL, like /uploads/<stored filename>
UPLOAD_DIR = settings["UPLOAD_DIR"]
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.get("/")
async def root():
    return {"message": "Welcome to the PKM API; If you're seeing this, the server is running!"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Router for registration and login
app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])


# Router for graph canvases, nodes and edges
app.include_router(graphs_router, prefix="/api/v1/graphs", tags=["graphs"])


# Router for Note Management endpoints
app.include_router(notes_router, prefix="/api/v1/notes", tags=["notes"])


# Router for checklists and their items
app.include_router(checklists_router, prefix="/api/v1/checklists", tags=["checklists"])


# Router for image uploads
app.include_router(images_router, prefix="/api/v1/images", tags=["images"])


# Router for incremental sync
app.include_router(sync_router, prefix="/api/v1/sync", tags=["sync"])

#
# End of main.py
########################################################################################################################
