import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from qnnect.core import config
from qnnect.database import Base, SessionLocal, engine, ensure_schema
from qnnect.models import appointment, setting, user  # noqa: F401  registers tables
from qnnect.models.topic import seed_default_topics
from qnnect.routes import (
    admin_routes,
    appointment_routes,
    auth_routes,
    faculty_routes,
    google_routes,
    qr_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Qnnect API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schema()
        with SessionLocal() as db:
            added = seed_default_topics(db)
        if added:
            logger.info('Seeded %s default topics', added)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.get('/')
def root():
    return {'status': 'Qnnect API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(faculty_routes.router, prefix='/faculty')
app.include_router(admin_routes.router, prefix='/admin')
app.include_router(google_routes.router, prefix='/google')
app.include_router(qr_routes.router, prefix='/qr')
