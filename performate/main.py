from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from performate.config import settings
from performate.db import Base, SessionLocal, engine
from performate.route_logging import EndpointNameRoute
from performate.routers import admin, attendance, auth, classes, morning_bliss, reports, stars, students, tallies
from performate.services.bootstrap_service import run_bootstrap

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run_bootstrap(db)
    finally:
        db.close()
    yield


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('performate.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response

app.include_router(auth.router)
app.include_router(students.router)
app.include_router(classes.router)
app.include_router(attendance.router)
app.include_router(tallies.router)
app.include_router(stars.router)
app.include_router(morning_bliss.router)
app.include_router(admin.router)
app.include_router(reports.router)


@app.get('/health')
def health():
    return {'status': 'ok', 'app': settings.app_name, 'env': settings.app_env}
