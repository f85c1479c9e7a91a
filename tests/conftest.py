"""
Shared test fixtures for Forex Desk.

Provides async test client, database session mocks, Redis mocks,
RSA key fixtures for JWT testing, and model factories.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

from app.core import security
from app.core.security import ROLE_ADMIN, ROLE_USER, create_access_token
from app.database import get_db
from app.models.forex_request import ForexRequest, OrderLine, OrderType
from app.models.markup_fee import MarkupFee, MarkupType, TransactionType
from app.redis_client import get_redis
from app.services import rate_service


# --- RSA Key Fixtures ---


@pytest.fixture(scope="session")
def test_rsa_keys():
    """Generate a temporary RSA keypair for test JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    return {"private_key": private_pem, "public_key": public_pem}


@pytest.fixture(autouse=True)
def security_with_keys(test_rsa_keys):
    """Configure token signing to use test RSA keys for every test."""
    security.configure_keys(
        private_key=test_rsa_keys["private_key"],
        public_key=test_rsa_keys["public_key"],
        algorithm="RS256",
    )


@pytest.fixture(autouse=True)
def reset_rate_provider():
    """Tests that swap the live rate provider get the default back afterwards."""
    yield
    rate_service.set_rate_provider(None)


# --- Auth headers ---


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def user_headers(user_id):
    return {"Authorization": f"Bearer {create_access_token(str(user_id), ROLE_USER)}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token(str(uuid.uuid4()), ROLE_ADMIN)}"}


# --- Mock Redis ---


@pytest.fixture
def mock_redis():
    """AsyncMock Redis client with common methods."""
    redis = AsyncMock()
    redis.setex = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock()
    return redis


# --- Mock Database Session ---


@pytest.fixture
def mock_db():
    """AsyncMock database session."""
    db = AsyncMock()

    # Mock the result object returned by db.execute()
    mock_result = MagicMock()
    mock_result.scalar_one_or_none = MagicMock(return_value=None)
    mock_result.scalar_one = MagicMock(return_value=0)
    mock_result.scalars.return_value.all.return_value = []
    db.execute = AsyncMock(return_value=mock_result)
    db.flush = AsyncMock()
    db.add = MagicMock()
    db.delete = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()

    return db


# --- Dependency Override Helpers ---


@pytest_asyncio.fixture
async def client(mock_db, mock_redis):
    """
    Async HTTP test client with get_db and get_redis overridden
    to use test doubles.
    """
    from app.main import app

    async def override_get_db():
        yield mock_db

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# --- Model factories ---


def _make_fee(**overrides) -> MarkupFee:
    """Create a MarkupFee with test defaults via the normal constructor."""
    defaults = {
        "currency_code": "USD",
        "city_code": "DEL",
        "transaction_type": TransactionType.CASH,
        "markup_type": MarkupType.PERCENTAGE,
        "description": "US Dollar",
        "markup_value": Decimal("2.5000"),
        "gst_percentage": Decimal("18.00"),
        "quantity": Decimal("1000.0000"),
    }
    defaults.update(overrides)
    return MarkupFee(**defaults)


@pytest.fixture
def make_fee():
    """Factory fixture for MarkupFee ledger rows."""
    return _make_fee


def _make_line(**overrides) -> OrderLine:
    defaults = {
        "order_type": OrderType.BUY.value,
        "currency": "USD",
        "product": "Cash",
        "currency_amount": Decimal("100"),
        "amount_in_inr": Decimal("8300"),
    }
    defaults.update(overrides)
    return OrderLine(**defaults)


@pytest.fixture
def make_line():
    """Factory fixture for order lines."""
    return _make_line


LEISURE_DOCUMENTS = {
    "pan_card_image": "https://docs.example.com/pan.jpg",
    "passport_front_image": "https://docs.example.com/passport-front.jpg",
    "passport_back_image": "https://docs.example.com/passport-back.jpg",
    "air_ticket": "https://docs.example.com/ticket.pdf",
    "visa_image": "https://docs.example.com/visa.jpg",
}


def _make_request(lines=None, **overrides) -> ForexRequest:
    """Create a Pending ForexRequest with leisure documents attached."""
    defaults = {
        "user_id": uuid.uuid4(),
        "order_type": OrderType.BUY,
        "traveler_name": "Priya Sharma",
        "phone_number": "+919876543210",
        "email": "priya@example.com",
        "pan_number": "ABCDE1234F",
        "indian_resident": True,
        "traveling_countries": ["France"],
        "start_date": date.today() + timedelta(days=10),
        "end_date": date.today() + timedelta(days=20),
        "purpose": "Leisure/Holiday/Personal Visit",
        "delivery_address": "12 MG Road, Connaught Place",
        "pincode": "110001",
        "city": "DEL",
        "state": "Delhi",
        **LEISURE_DOCUMENTS,
    }
    defaults.update(overrides)
    request = ForexRequest(**defaults)
    request.set_order_lines(lines if lines is not None else [_make_line()])
    return request


@pytest.fixture
def make_request():
    """Factory fixture for ForexRequest orders."""
    return _make_request


# --- Sample payloads ---


@pytest.fixture
def buy_payload():
    """Valid Buy request payload (camelCase wire format)."""
    return {
        "orderType": "Buy",
        "orderDetails": [
            {
                "orderType": "Buy",
                "currency": "usd",
                "product": "Cash",
                "currencyAmount": 500,
                "amountInINR": 41500,
            },
        ],
        "travelerName": "Priya Sharma",
        "phoneNumber": "+919876543210",
        "email": "Priya@Example.com",
        "panNumber": "abcde1234f",
        "indianResident": True,
        "travelingCountries": ["France", "Italy"],
        "startDate": (date.today() + timedelta(days=10)).isoformat(),
        "endDate": (date.today() + timedelta(days=20)).isoformat(),
        "purpose": "Leisure/Holiday/Personal Visit",
        "deliveryAddress": "12 MG Road, Connaught Place",
        "pincode": "110001",
        "city": "del",
        "state": "Delhi",
        "panCardImage": LEISURE_DOCUMENTS["pan_card_image"],
        "passportFrontImage": LEISURE_DOCUMENTS["passport_front_image"],
        "passportBackImage": LEISURE_DOCUMENTS["passport_back_image"],
        "airTicket": LEISURE_DOCUMENTS["air_ticket"],
        "visaImage": LEISURE_DOCUMENTS["visa_image"],
    }


@pytest.fixture
def sell_payload():
    """Valid Sell request payload using the legacy single-line fields."""
    return {
        "orderType": "Sell",
        "currency": "EUR",
        "product": "Sell Cash",
        "currencyAmount": 200,
        "amountInINR": 18000,
        "travelerName": "Rahul Verma",
        "phoneNumber": "9123456789",
        "email": "rahul@example.com",
        "panNumber": "PQRSX6789K",
        "indianResident": True,
        "deliveryAddress": "45 Marine Drive, Churchgate",
        "pincode": "400020",
        "city": "BOM",
        "state": "Maharashtra",
        "panCardImage": LEISURE_DOCUMENTS["pan_card_image"],
        "passportFrontImage": LEISURE_DOCUMENTS["passport_front_image"],
        "passportBackImage": LEISURE_DOCUMENTS["passport_back_image"],
    }
