from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pblab.config import settings
from pblab.errors import PBLabError, get_technical_details, get_user_message

log = logging.getLogger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def pblab_error_handler(request: Request, exc: PBLabError) -> JSONResponse:
    details = get_technical_details(exc)
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, details)
    else:
        log.info("%s %s rejected: %s", request.method, request.url.path, details)
    return _error_response(exc.status_code, get_user_message(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location} {error.get('msg', 'is invalid')}".strip())
    return _error_response(400, "; ".join(problems) or "Invalid request")


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, get_user_message(exc))


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

    app.add_exception_handler(PBLabError, pblab_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    from pblab.routers.admin.routes import router as admin_router
    from pblab.routers.ai.routes import router as ai_router
    from pblab.routers.artifacts.routes import router as artifacts_router
    from pblab.routers.assessments.routes import router as assessments_router
    from pblab.routers.auth.routes import router as auth_router
    from pblab.routers.dashboard.routes import router as dashboard_router
    from pblab.routers.notifications.routes import router as notifications_router
    from pblab.routers.problems.routes import router as problems_router
    from pblab.routers.projects.routes import router as projects_router
    from pblab.routers.teams.routes import router as teams_router

    app.include_router(auth_router)
    app.include_router(dashboard_router)
    app.include_router(projects_router)
    app.include_router(problems_router)
    app.include_router(artifacts_router)
    app.include_router(notifications_router)
    app.include_router(assessments_router)
    app.include_router(teams_router)
    app.include_router(ai_router)
    app.include_router(admin_router)

    @app.get("/health", name="main.health")
    def health():
        return {"success": True, "data": {"name": settings.APP_NAME, "version": settings.APP_VERSION}}

    return app


app = create_app()
