from fastapi import FastAPI

from app.api.matters import router as matters_router
from app.api.meetings import router as meetings_router
from app.api.pipelines import router as pipelines_router
from app.api.tasks import router as tasks_router
from app.errors import register_error_handlers
from app.logging import configure_logging

app = FastAPI(title="Matter Coordination API")

configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(pipelines_router)
_include_api_router(matters_router)
_include_api_router(tasks_router)
_include_api_router(meetings_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
