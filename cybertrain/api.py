from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from cybertrain.routes.admin_content_routes import admin_content_routes
from cybertrain.routes.admin_org_routes import admin_org_routes
from cybertrain.routes.admin_user_routes import admin_user_routes
from cybertrain.routes.auth_routes import auth_routes
from cybertrain.routes.certificate_routes import certificate_routes
from cybertrain.routes.quiz_routes import quiz_routes
from cybertrain.routes.training_routes import training_routes
from cybertrain.routes.user_routes import user_routes
from cybertrain.config import SessionLocal, create_db
from cybertrain.services.progress_service import ProgressService
from cybertrain.utils.errors import TrainingError
from cybertrain.utils.logger import configure_logging, set_request_id, clear_request_id
from fastapi import Request
from starlette.responses import Response, JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = configure_logging()


def run_startup_maintenance() -> None:
    """Create tables and flag completed modules that are missing their certificate."""
    create_db()
    db = SessionLocal()
    try:
        fixed = ProgressService(db).backfill_module_certificates()
        logger.info("Startup certificate backfill fixed=%s", fixed)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(_: FastAPI):
    run_startup_maintenance()
    yield


app = FastAPI(title="cybertrain", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = set_request_id(request.headers.get("x-request-id"))
    try:
        logger.info("request start method=%s path=%s client=%s", request.method, request.url.path, request.client)
        response: Response = await call_next(request)
        logger.info("request end status=%s method=%s path=%s", response.status_code, request.method, request.url.path)
        response.headers["x-request-id"] = rid
        return response
    except Exception:
        logger.exception("request error method=%s path=%s", request.method, request.url.path)
        raise
    finally:
        clear_request_id()


@app.exception_handler(TrainingError)
async def training_error_handler(request: Request, exc: TrainingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("training error status=%s method=%s path=%s detail=%s", exc.status_code, request.method, request.url.path, exc.detail)
    else:
        logger.warning("training error status=%s method=%s path=%s detail=%s", exc.status_code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    # Log server-side errors with stack traces; client errors as warnings.
    if exc.status_code >= 500:
        logger.exception("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
    else:
        logger.warning("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("validation error method=%s path=%s errors=\n%s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that are not JSON serialisable.
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak internal exception details to clients.
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.get("/")
def read_root():
    return {"message": "cybertrain is Healthy"}

app.include_router(auth_routes, prefix="/auth", tags=["auth"])
app.include_router(user_routes, prefix="/account", tags=["account"])
app.include_router(training_routes, prefix="/training", tags=["training"])
app.include_router(quiz_routes, prefix="/training", tags=["training"])
app.include_router(certificate_routes, prefix="/training", tags=["certificates"])
app.include_router(admin_org_routes, prefix="/admin", tags=["admin"])
app.include_router(admin_content_routes, prefix="/admin", tags=["admin"])
app.include_router(admin_user_routes, prefix="/admin", tags=["admin"])

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
