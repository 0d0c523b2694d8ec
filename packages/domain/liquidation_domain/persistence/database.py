from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import Engine, Numeric, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ..config import EngineSettings, get_settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    type_annotation_map = {
        Decimal: Numeric(24, 10),
    }


def create_db_engine(settings: Optional[EngineSettings] = None) -> Engine:
    settings = settings or get_settings()
    engine = create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Drop stale connections before use
    )
    logger.debug("database_engine_created", url=engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, class_=Session, expire_on_commit=False)


def create_schema(engine: Engine) -> None:
    """Create every table the engine knows about (tests and local setups)."""
    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(engine)
