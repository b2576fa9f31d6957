import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import settings
import ai
import auth
import realtime
import screen_time
import social
import timetable
import users
import website_blocker
from database import db, ensure_indexes

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("distracto")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes()
    except PyMongoError as e:
        logger.error("Could not ensure indexes: %s", e)
    logger.info("%s running (environment: %s)", settings.APP_NAME, settings.ENVIRONMENT)
    yield


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error handling ----------
@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    # the router raises a bare "Not Found" when no route matches the path
    if exc.status_code == 404 and exc.detail == "Not Found" and request.url.path.startswith("/api/"):
        return JSONResponse(status_code=404, content={"detail": "API endpoint not found"})
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def server_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


# ---------- Routes ----------
for module in (auth, users, screen_time, website_blocker, timetable, social, ai):
    app.include_router(module.router, prefix="/api")
app.include_router(realtime.router)


@app.get("/")
def root():
    return {"app": settings.APP_NAME, "status": "ok"}


@app.get("/test")
def test_database():
    info = {
        "backend": "running",
        "database": "connected" if db is not None else "not_connected",
    }
    try:
        if db is not None:
            info["collections"] = db.list_collection_names()
    except PyMongoError as e:
        info["database"] = "error"
        info["error"] = str(e)
    return info


@app.get("/api/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
