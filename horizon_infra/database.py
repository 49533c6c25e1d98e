from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from .config import settings

def _engine_options(database_url: str) -> dict:
    """Connection options for the configured database backend"""
    if database_url.startswith("sqlite"):
        # Sessions are handed to background tasks running on other threads
        return {"connect_args": {"check_same_thread": False}}

    options = {
        "pool_size": 10,           # Number of connections to maintain in pool
        "max_overflow": 20,        # Additional connections beyond pool_size
        "pool_timeout": 30,        # Timeout waiting for connection from pool
        "pool_recycle": 3600,      # Recycle connections after 1 hour
        "pool_pre_ping": True,     # Validate connections before use
    }
    if "postgresql" in database_url:
        options["connect_args"] = {
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000"  # 30 second query timeout
        }
    return options

engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
