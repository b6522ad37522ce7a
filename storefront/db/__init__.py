import importlib
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings
from storefront.utils.logging import get_logger

log = get_logger(__name__)

Base = declarative_base()

# imported by init_db so that Base.metadata knows every table
MODEL_MODULES = [
    "storefront.models.product",
    "storefront.models.address",
    "storefront.models.cart",
    "storefront.models.cart_item",
    "storefront.models.order",
    "storefront.models.payment",
]


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # sessions are handed between FastAPI's threadpool workers
        connect_args = {"check_same_thread": False}
    return create_engine(url, future=True, echo=False, connect_args=connect_args)


def make_session_factory(engine_):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine_)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def import_models():
    for mod in MODEL_MODULES:
        importlib.import_module(mod)


def init_db(reset: bool = False, bind=None):
    """
    Create all tables.

    Drops existing tables first when ``reset`` is true or the RESET_DB env var
    is set to 1/true/yes.
    """
    bind = bind or engine
    import_models()
    env_reset = os.environ.get("RESET_DB", "false").lower() in ("1", "true", "yes")
    if reset or env_reset:
        log.info("Resetting database")
        Base.metadata.drop_all(bind=bind)
    Base.metadata.create_all(bind=bind)
    log.info("Database initialized (%d tables)", len(Base.metadata.tables))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
