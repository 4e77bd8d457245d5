import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.dependencies import close_case_data_service
from app.api.routes import router as api_router
from app.config import get_settings
from app.services.errors import CaseDataError

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


_configure_logging()

app = FastAPI(title="County Case Map Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins(),
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)
app.include_router(api_router)


@app.on_event("shutdown")
def shutdown_case_data_service():
    close_case_data_service()
    logger.info("shutdown_case_data_service closed=true")


@app.exception_handler(CaseDataError)
def handle_case_data_error(request: Request, exc: CaseDataError):
    logger.exception("case_data_error path=%s code=%s", request.url.path, exc.code, exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "internal server error", "code": "internal_error"})


@app.get("/health")
def health_check():
    return {"status": "ok"}
