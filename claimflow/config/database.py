"""
Database configuration
SQLAlchemy engine, session factory and unit-of-work helper
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Enum as SAEnum, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from claimflow.config.settings import settings
from claimflow.utils.exceptions import PersistenceError

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
    echo=settings.DATABASE_ECHO,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Run a block of writes as one all-or-nothing transaction
    
    Commits when the block exits cleanly. Any exception rolls back every
    write made in the block; store failures are re-raised as PersistenceError.
    
    Args:
        db: Database session
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Database operation failed: {e.__class__.__name__}") from e
    except Exception:
        db.rollback()
        raise


def string_enum(enum_cls, length: int = 32) -> SAEnum:
    """
    Column type storing a str-Enum by its lowercase value
    
    Args:
        enum_cls: Enum class whose members are str values
        length: VARCHAR length
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
    )
