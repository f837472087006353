from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pozhi.core.config import SQLALCHEMY_DATABASE_URI
from pozhi.db.base_class import Base

# SQLite connections are shared with the threadpool FastAPI runs sync endpoints in
connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URI.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URI, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create any missing tables. Schema migrations are handled outside the app."""
    import pozhi.models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
