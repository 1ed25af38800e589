from sqlmodel import Session, SQLModel, create_engine
from order_sync.config import DATABASE_URL
import logging

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)


def create_db_and_tables():
    """Create all tables registered on the SQLModel metadata."""
    # Import models so they register with SQLModel before create_all
    import order_sync.models  # noqa: F401
    SQLModel.metadata.create_all(engine)
    logger.info("✅ Database tables ready")


# Dependency for FastAPI routes
def get_db():
    """Database session dependency for FastAPI routes"""
    with Session(engine) as db:
        yield db
