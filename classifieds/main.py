from fastapi import FastAPI

from classifieds import scheduler
from classifieds.api.routes import register_error_handlers, router as api_router
from classifieds.config import ENABLE_SCHEDULER
from classifieds.db import Base, engine
import classifieds.models  # noqa: F401 ensure models are imported so tables are known

# create FastAPI instance
app = FastAPI(title="Classifieds")
app.include_router(api_router)
register_error_handlers(app)


@app.on_event("startup")
def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    if ENABLE_SCHEDULER:
        scheduler.start()


@app.on_event("shutdown")
def on_shutdown():
    scheduler.shutdown()
