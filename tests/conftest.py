import os
import tempfile

# Set environment variables BEFORE any imports that might use settings
# Use a temporary directory for test database to avoid permission issues
_test_db_dir = tempfile.mkdtemp()
_test_db_path = os.path.join(_test_db_dir, "test_marketplace.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key-min-32-characters-long-for-testing"
os.environ["ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "30"
os.environ["RULE_TIMEOUT_SECONDS"] = "5"

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from app.main import app
from app.core.security import create_access_token
from app.repositories.account import create_account_type
from app.repositories.user import create_user
from app.services.validator import create_validator
from app.validation import RuleRegistry


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test and run migrations."""
    # Use a temporary file for SQLite database
    temp_db_dir = tempfile.mkdtemp()
    test_db_path = os.path.join(temp_db_dir, "test.db")
    test_db_url = f"sqlite:///{test_db_path}"

    # Create test engine and session with proper SQLite settings
    test_engine = create_engine(
        test_db_url,
        connect_args={"check_same_thread": False},
        poolclass=None,  # Don't use connection pooling for SQLite
    )

    # Enable WAL mode to reduce locking issues, and FK actions for cascades
    @event.listens_for(test_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine
    )

    # Run Alembic migrations to set up the database schema
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", test_db_url)
    command.upgrade(alembic_cfg, "head")

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Dispose the engine to close all connections
        test_engine.dispose()

        # Clean up - remove test database file, WAL files and directory
        for suffix in ["", "-wal", "-shm"]:
            path = f"{test_db_path}{suffix}"
            if os.path.exists(path):
                os.remove(path)
        if os.path.exists(temp_db_dir):
            os.rmdir(temp_db_dir)


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database dependency override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    from app.api.deps import get_db

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def db(db_session):
    """Alias for db_session to match test naming conventions."""
    return db_session


@pytest.fixture(scope="function")
def admin_user(db: Session):
    return create_user(db, email="admin@test.example.com", name="Admin", role="admin")


@pytest.fixture(scope="function")
def admin_token(admin_user) -> str:
    return create_access_token(data={"sub": admin_user.id})


@pytest.fixture(scope="function")
def seller(db: Session):
    return create_user(db, email="seller@example.com", name="Seller")


@pytest.fixture(scope="function")
def seller_token(seller) -> str:
    return create_access_token(data={"sub": seller.id})


@pytest.fixture(scope="function")
def buyer(db: Session):
    return create_user(db, email="buyer@example.com", name="Buyer")


@pytest.fixture(scope="function")
def buyer_token(buyer) -> str:
    return create_access_token(data={"sub": buyer.id})


@pytest.fixture(scope="function")
def account_type(db: Session, admin_user):
    """An account type owned by the admin user."""
    return create_account_type(
        db, name="Game account", description="Accounts of an online game", creator_id=admin_user.id
    )


@pytest.fixture(scope="function")
def register_rule():
    """Register rules for one test and remove them afterwards."""
    keys: list[str] = []

    def _register(key, fn, triggers=None, params_model=None):
        RuleRegistry.register(key, fn, triggers=triggers, params_model=params_model)
        keys.append(key)
        return fn

    yield _register

    for key in keys:
        RuleRegistry.unregister(key)


@pytest.fixture(scope="function")
def make_validator(db: Session):
    """Create validator definitions with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "name": f"Validator {counter['n']}",
            "slug": f"validator-{counter['n']}",
            "description": "",
            "approver_description": "",
            "readable_fields": [],
            "updatable_fields": [],
            "callback": None,
        }
        fields.update(overrides)
        return create_validator(db, **fields)

    return _make
