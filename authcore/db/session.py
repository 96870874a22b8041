"""
Database session management - SQLAlchemy engine and session factory.

Two consumers:
- Route handlers get one session per request through get_db().
- The credential store opens its own short sessions from SessionLocal,
  because a token refresh can outlive the request that started it.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from authcore.core.config import settings

# ---------------------------------------------------------------------------
# DATABASE ENGINE
# ---------------------------------------------------------------------------
# pool_pre_ping=True: check pooled connections before use (survives DB restarts)
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
)

# ---------------------------------------------------------------------------
# SESSION FACTORY
# ---------------------------------------------------------------------------
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...

    The session is always closed after the response, even if the route raises.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
