# backend/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from config import settings
from database import init_db
from utils.errors import register_exception_handlers
from utils.storage import get_photo_storage

# Router imports
from routes.auth import router as auth_router
from routes.profile import router as profile_router
from routes.admin import router as admin_router
from routes.logs import router as logs_router
from routes.locations import router as locations_router
from routes.reviews import router as reviews_router
from routes.uploads import router as uploads_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema and upload directory are prepared once per process
    init_db()
    storage = get_photo_storage()
    storage.ensure_dirs()
    logger.info("Acessae API started (uploads in %s)", storage.reviews_dir)
    yield


app = FastAPI(title="Acessae API", version="1.0.0", lifespan=lifespan)

# CORS Configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Router registration
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(admin_router)
app.include_router(logs_router)
app.include_router(locations_router)
app.include_router(reviews_router)
app.include_router(uploads_router)

@app.get("/")
def read_root():
    return {"message": "Acessae API is running"}
