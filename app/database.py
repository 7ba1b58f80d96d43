"""
Database engine + session factory.

SQLite for local dev and tests, Postgres in production. Sessions do not expire
on commit so services can hand back plain records after closing them.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from app.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


# Heroku-style URLs use postgres:// but SQLAlchemy 2.x requires postgresql://
url = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

if url.startswith('sqlite'):
    engine = create_engine(url, connect_args={'check_same_thread': False})
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session():
    """Return a new DB session. Callers own commit/rollback/close."""
    return SessionLocal()
