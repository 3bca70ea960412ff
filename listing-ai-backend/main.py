import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS, LOG_LEVEL
from database import Base, engine
from errors import ListingError
from routers import jobs, media, products

# --------------------------------------------------------------------------
# --- Configuration & Setup ---
# --------------------------------------------------------------------------

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Creates tables on start-up and releases pooled connections on shutdown."""
    Base.metadata.create_all(bind=engine)
    logging.info("🚀 Listing API started")
    yield
    engine.dispose()
    logging.info("Listing API stopped")


app = FastAPI(
    title="Video-to-Listing Generator",
    description="Turns a short product video and a text hint into a marketplace listing.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ListingError)
async def listing_error_handler(request: Request, exc: ListingError):
    status = "fail" if 400 <= exc.status_code < 500 else "error"
    if status == "error":
        logging.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"status": status, "message": exc.message})


# --------------------------------------------------------------------------
# --- API Endpoints ---
# --------------------------------------------------------------------------

app.include_router(jobs.router)
app.include_router(products.router)
app.include_router(media.router)


@app.get("/")
def read_root():
    return {"status": "🚀 Video-to-Listing Generator is running!"}
