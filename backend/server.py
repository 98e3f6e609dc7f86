from fastapi import FastAPI, APIRouter, Request, status
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path

from bootstrap import run_bootstrap_migrations
from errors import ServiceError
from routers.org_admin import router as org_admin_router
from routers.participant import router as participant_router
from routers.public import router as public_router

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(title="Event Quiz API", version="1.0.0")
api_router = APIRouter(prefix="/api")


# ==================== STARTUP ====================
@app.on_event("startup")
async def startup_event():
    if os.environ.get("RUN_MIGRATIONS_ON_STARTUP", "true").lower() == "true":
        run_bootstrap_migrations()


# ==================== ERRORS ====================
@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error in {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"}
    )


# Include routers and add middleware
api_router.include_router(public_router)
api_router.include_router(participant_router, tags=["participant"])
api_router.include_router(org_admin_router, tags=["organizer"])
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)
