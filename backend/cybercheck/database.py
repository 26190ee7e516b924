"""
Database engine, session factory and table definitions
"""
from typing import Generator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from cybercheck.config import get_settings

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("login", String(64), nullable=False, unique=True),
    Column("full_name", String(255), nullable=True),
    Column("role", String(16), nullable=False),
    Column("password_hash", String(255), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
)

lessons = Table(
    "lessons",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("teacher_id", String(64), nullable=False),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("radius_meters", Float, nullable=True),
    Column("pin_code", String(16), nullable=True, index=True),
    Column("pin_expires_at", DateTime(timezone=True), nullable=True),
    Column("pin_validity_seconds", Integer, nullable=True),
    Column("fake_detection_level", String(16), nullable=False, default="medium"),
    Column("allow_skip_gps", Boolean, nullable=False, default=False),
    Column("is_active", Boolean, nullable=False, default=True),
)

attendance = Table(
    "attendance",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("lesson_id", String(64), nullable=False),
    Column("student_id", String(64), nullable=False),
    Column("status", String(16), nullable=False),
    Column("check_in_time", DateTime(timezone=True), nullable=False),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Column("accuracy_meters", Float, nullable=True),
    Column("distance_meters", Float, nullable=False),
    Column("is_fake_gps", Boolean, nullable=False, default=False),
    Column("suspicious_reason", Text, nullable=True),
    Column("fingerprint", String(128), nullable=True),
    Column("user_agent", Text, nullable=True),
    UniqueConstraint("lesson_id", "student_id", name="uq_attendance_lesson_student"),
)

activity_logs = Table(
    "activity_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=True),
    Column("action", String(64), nullable=False),
    Column("details", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, **kwargs)

    settings = get_settings()
    return create_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        **kwargs,
    )


_engine = None
_SessionLocal = None


def get_sessionmaker() -> sessionmaker:
    global _engine, _SessionLocal
    if _SessionLocal is None:
        _engine = build_engine(get_settings().DATABASE_URL)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False)
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a database session"""
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
