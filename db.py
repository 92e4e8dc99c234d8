# db.py
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

load_dotenv(override=True)

DB_URL = os.getenv("DATABASE_URL", "sqlite:///luggage.db")


def make_engine(url: str):
    # SQLite needs this connect arg
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(DB_URL)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_rollback(db: Session) -> None:
    """Commit the unit of work; on failure roll back so nothing half-written survives."""
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
