from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create engine; SQLite connections are shared across the event loop thread and BackgroundTasks."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


def init_db(bind: Engine) -> None:
    # Import models so they register on Base.metadata
    import receptionist.models  # noqa: F401

    Base.metadata.create_all(bind=bind)
