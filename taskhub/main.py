from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from taskhub.core import config
from taskhub.core.database.engine import init_db
from taskhub.features.permissions.errors import AccessError
from taskhub.features.users.routes import router as user_router
from taskhub.features.users.dependencies import get_authorization_header
from taskhub.features.workspaces.routes import (
    workspace_router,
    space_router,
    board_router,
    task_router,
)
from taskhub.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Taskhub Backend",
    description="Project-management backend with hierarchical workspace access control",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header, default_limits=[config.DEFAULT_RATE_LIMIT])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.taskhub.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
if not config.STRICT_HIERARCHY_CHECKS:
    log.warning("Space and board checks grant on any workspace role")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(AccessError)
async def access_error_handler(_request: Request, exc: AccessError) -> Response:
    public = exc.to_public(config.HIDE_RESOURCE_EXISTENCE)
    return JSONResponse(
        {"detail": public.message, "reason": public.reason},
        status_code=public.status_code,
    )


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Taskhub Backend API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "access_control": {
            "hierarchy": ["workspace", "space", "board", "task"],
            "strict_hierarchy_checks": config.STRICT_HIERARCHY_CHECKS,
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Routers are mounted under the role-matrix namespaces
app.include_router(workspace_router, prefix="/workspace", tags=["workspaces"])
app.include_router(space_router, prefix="/space", tags=["spaces"])
app.include_router(board_router, prefix="/board", tags=["boards"])
app.include_router(task_router, prefix="/task", tags=["tasks"])
app.include_router(user_router, prefix="/users", tags=["users"])
