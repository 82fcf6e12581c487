"""Shared pytest fixtures for test suite"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

TEST_SIGNING_SECRET = "test-secret-32-characters-long-123456"

# Settings are read at import time
os.environ.setdefault("CONTENT_SIGNING_SECRET", TEST_SIGNING_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from contentgate.main import app
from contentgate.db import redis as redis_module
from contentgate.db.session import get_db
from contentgate.models import Base
from contentgate.models.content_file import ContentFile
from contentgate.models.license import License
from contentgate.models.product import Product
from contentgate.models.user import User
from contentgate.services.rate_limiter import InMemoryRateLimitStore, RateLimiter, get_rate_limiter
from contentgate.utils import content_tokens
from contentgate.utils.content_tokens import ContentSecurityConfig, ContentSigner


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

VALID_DRIVE_ID = "1BxiMVs0XRA5nFMdKvBdBZjgmUUqptlbs74OgvE2upms"
VALID_VIDEO_ID = "dQw4w9WgXcQ"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client using fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def security_config() -> ContentSecurityConfig:
    return ContentSecurityConfig(
        signing_secret=TEST_SIGNING_SECRET,
        max_file_size=100 * 1024 * 1024,
        allowed_content_types=("pdf", "docx", "video", "file"),
        max_downloads_per_hour=50,
        document_expiry_minutes=60,
        video_expiry_minutes=120,
    )


@pytest.fixture(scope="function")
def signer(security_config) -> Generator[ContentSigner, None, None]:
    """Signer with the test secret, also installed as the process-wide signer"""
    content_signer = ContentSigner(security_config)
    with patch.object(content_tokens, "_signer", content_signer):
        yield content_signer


@pytest.fixture(scope="function")
def rate_limiter() -> RateLimiter:
    return RateLimiter(store=InMemoryRateLimitStore(), limit=50, window_seconds=3600)


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis, signer, rate_limiter) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database, mocked Redis and a fresh rate limiter"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    try:
        # Disable OpenTelemetry and real database setup in tests
        with patch("contentgate.core.otel.initialize_otel", return_value=False):
            with patch("contentgate.core.otel.setup_otel_logging", return_value=False):
                with patch("contentgate.core.otel.instrument_sqlalchemy"):
                    with patch("contentgate.main.init_db"):
                        with TestClient(app) as test_client:
                            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    user = User(email="buyer@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def test_product(db_session: Session) -> Product:
    product = Product(name="Pitch Deck Masterclass", slug="pitch-deck-masterclass")
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture(scope="function")
def other_product(db_session: Session) -> Product:
    product = Product(name="Cold Email Templates", slug="cold-email-templates")
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture(scope="function")
def document_file(db_session: Session, test_product: Product) -> ContentFile:
    content_file = ContentFile(
        product_id=test_product.id,
        name="Workbook.pdf",
        content_type="pdf",
        google_drive_link=f"https://drive.google.com/file/d/{VALID_DRIVE_ID}/view?usp=sharing",
        file_size_bytes=2 * 1024 * 1024,
    )
    db_session.add(content_file)
    db_session.commit()
    db_session.refresh(content_file)
    return content_file


@pytest.fixture(scope="function")
def video_file(db_session: Session, test_product: Product) -> ContentFile:
    content_file = ContentFile(
        product_id=test_product.id,
        name="Lesson 1",
        content_type="video",
        youtube_link=f"https://www.youtube.com/watch?v={VALID_VIDEO_ID}",
    )
    db_session.add(content_file)
    db_session.commit()
    db_session.refresh(content_file)
    return content_file


@pytest.fixture(scope="function")
def license_factory(db_session: Session):
    """Create licenses with arbitrary status and expiry"""
    def make_license(user: User, product: Product, status: str = "active", expires_at=None) -> License:
        lic = License(user_id=user.id, product_id=product.id, status=status, expires_at=expires_at)
        db_session.add(lic)
        db_session.commit()
        db_session.refresh(lic)
        return lic
    return make_license


@pytest.fixture(scope="function")
def active_license(license_factory, test_user: User, test_product: Product) -> License:
    return license_factory(
        test_user, test_product,
        expires_at=datetime.now(timezone.utc) + timedelta(days=30)
    )


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, test_user: User, mock_redis) -> TestClient:
    """Client carrying a session cookie the auth service would have issued"""
    session_id = "test-session-0123456789abcdef"
    mock_redis.setex(f"session:{session_id}", 2592000, str(test_user.id))
    client.cookies.set("session_id", session_id)
    return client
