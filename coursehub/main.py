import logging
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError

from coursehub.config import configure_logging, get_settings
from coursehub.database import Base, engine
from coursehub.exceptions import Conflict, CourseHubError
from coursehub.routes import assignments, auth, courses, enrollments, quizzes

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="CourseHub API")

app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(courses.content_router)
app.include_router(enrollments.router)
app.include_router(quizzes.router)
app.include_router(assignments.router)

Path(settings.media_root).mkdir(parents=True, exist_ok=True)
app.mount(settings.media_url, StaticFiles(directory=settings.media_root), name="media")


@app.exception_handler(CourseHubError)
async def coursehub_error_handler(request: Request, exc: CourseHubError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"kind": exc.kind, "detail": exc.message})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("%s %s hit a uniqueness conflict: %s", request.method, request.url.path, exc.orig)
    return await coursehub_error_handler(request, Conflict("The record was changed by another request, retry"))


@app.get("/")
def root():
    return {"message": "CourseHub API running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
