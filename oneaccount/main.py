import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from oneaccount.api.deps import get_services
from oneaccount.api.routers import api_keys, app_settings, auth, mfa
from oneaccount.core.config import get_settings
from oneaccount.core.errors import OneAccountError, oneaccount_error_handler
from oneaccount.db.base import Base
from oneaccount.db.init_db import seed_data, seed_settings
from oneaccount.db.session import SessionLocal, engine

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

docs_url = "/docs" if settings.enable_docs else None
redoc_url = "/redoc" if settings.enable_docs else None
openapi_url = "/openapi.json" if settings.enable_docs else None

app = FastAPI(title=settings.app_name, version="0.1.0", docs_url=docs_url, redoc_url=redoc_url, openapi_url=openapi_url)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)
app.add_exception_handler(OneAccountError, oneaccount_error_handler)

app.include_router(auth.router)
app.include_router(mfa.router)
app.include_router(app_settings.router)
app.include_router(api_keys.router)


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_settings(db, get_services().settings_manager)
        seed_data(db)
    finally:
        db.close()
