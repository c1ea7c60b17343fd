import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

from . import settings
from .database import ensure_indexes, get_db
from .errors import register_error_handlers
from .limits import limiter
from .routes import ROUTERS

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db())
    log.info("Server running in %s mode on port %s", settings.APP_ENV, settings.PORT)
    yield


app = FastAPI(title="Shelter CMS Backend", lifespan=lifespan)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

for router in ROUTERS:
    app.include_router(router)


# ---------------------- Health & Schema ----------------------
@app.get("/")
def read_root():
    return {"success": True, "message": "Shelter CMS backend running"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    """Report database connectivity and the collections present."""
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_name": settings.DATABASE_NAME,
        "collections": [],
    }
    try:
        response["collections"] = sorted(db.list_collection_names())[:10]
        response["database"] = "Connected & Working"
    except Exception as e:
        log.warning("Database check failed: %s", e)
        response["database"] = f"Error: {str(e)[:80]}"
    return response


@app.get("/schema")
def schema_definitions():
    return {
        "collections": [
            "adminuser",
            "category",
            "photo",
            "award",
            "video",
            "blogpost",
            "rescuepost",
            "testimonial",
            "contact",
            "volunteer",
            "visitor",
            "totalimpact",
        ]
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
