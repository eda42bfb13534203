# bugtracker/main.py
import os
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv

from bugtracker.db import db, ensure_indexes, CREATE_INDEXES
from bugtracker.errors import register_exception_handlers
from bugtracker.routers import auth, projects, tickets, comments, realtime
from bugtracker.storage import UPLOAD_DIR, UPLOAD_URL_PREFIX

load_dotenv()

# -------------------------
# Logging
# -------------------------
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if CREATE_INDEXES:
        await ensure_indexes(db)
    logger.info("Bug Tracker API started")
    yield


# -------------------------
# Initialize FastAPI App
# -------------------------
app = FastAPI(title="Bug Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# -------------------------
# Root Route
# -------------------------
@app.get("/")
def read_root():
    return {"message": "Bug Tracker API is running..."}


@app.get("/health")
def health_check():
    return {"status": "healthy"}

# -------------------------
# Include Routers
# -------------------------
app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(tickets.router)
app.include_router(comments.router)
app.include_router(realtime.router)

# -------------------------
# Uploaded attachments
# -------------------------
Path(UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=UPLOAD_DIR), name="uploads")
