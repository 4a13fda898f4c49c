# realty/main.py
import os
from fastapi import FastAPI
import realty.models  # noqa: F401 ensure models are imported so tables are known
from realty.api.routes import router as api_router
from realty.scheduler import start_scheduler as start_jobs
from realty.services import Services, build_services
from realty.utils import logger


def create_app(services: Services = None, start_scheduler: bool = None) -> FastAPI:
    app = FastAPI(title="Realty listings")
    app.state.services = services or build_services()
    app.state.scheduler = None
    app.include_router(api_router)
    if start_scheduler is None:
        start_scheduler = os.getenv("SCHEDULER_ENABLED", "1") == "1"

    @app.on_event("startup")
    def on_startup():
        # Ensure reference tables exist; catalog data lives in the remote service
        app.state.services.create_tables()
        if start_scheduler:
            app.state.scheduler = start_jobs(app.state.services)

    @app.on_event("shutdown")
    def on_shutdown():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        app.state.services.close()

    return app


app = create_app()
