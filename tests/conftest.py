import os

# Settings are read at import time, so the environment is fixed before app imports
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("OTP_TEST_MODE", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_webhook_secret")
os.environ.setdefault("SMTP_HOST", "")
os.environ.setdefault("TWOFACTOR_API_KEY", "")

from datetime import date, timedelta

import pytest
import pytest_asyncio
import razorpay
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.rate_limit import MemoryWindowStore, RateLimiter, get_rate_limiter
from app.core.security import create_access_token, get_password_hash
from app.db.models import Admin, SQLModel, User
from app.db.session import get_session
from app.main import app
from app.services.email_service import EmailService, get_email_service
from app.services.file_storage import SlipStorage, get_slip_storage
from app.services.payment_gateway import RazorpayGateway, get_payment_gateway
from app.services.sms_service import SmsResult, get_sms_client

from helpers import KEY_SECRET, WEBHOOK_SECRET


class FakeOrders:
    def __init__(self):
        self.created = []
        self.fail = False

    def create(self, payload):
        if self.fail:
            raise RuntimeError("Gateway unavailable")
        self.created.append(payload)
        return {
            "id": f"order_test{len(self.created):04d}",
            "amount": payload["amount"],
            "currency": payload["currency"],
            "receipt": payload["receipt"],
            "status": "created",
        }

    def fetch(self, order_id):
        return {"id": order_id, "status": "paid"}


class FakePayments:
    def __init__(self):
        self.records = {}

    def fetch(self, payment_id):
        if payment_id not in self.records:
            raise RuntimeError("The id provided does not exist")
        return self.records[payment_id]


class FakeRazorpayClient:
    def __init__(self):
        self.auth = ("rzp_test_key", KEY_SECRET)
        self.order = FakeOrders()
        self.payment = FakePayments()
        # Signature checks run through the real SDK helper
        self.utility = razorpay.Utility(self)

    def add_payment(self, payment_id, order_id, amount, status="captured", method="upi"):
        self.payment.records[payment_id] = {
            "id": payment_id,
            "order_id": order_id,
            "amount": amount,
            "status": status,
            "method": method,
        }


class RecordingSMS:
    def __init__(self):
        self.sent = []

    async def send_otp(self, phone, code):
        self.sent.append((phone, code))
        return SmsResult(success=True, message_id=f"msg-{len(self.sent)}")


class RecordingEmail(EmailService):
    def __init__(self):
        super().__init__(host="", sender="noreply@test.local", admin_email="admin@test.local")
        self.sent = []
        self.error = None

    async def send_email(self, subject, recipients, body):
        if self.error:
            raise self.error
        self.sent.append((subject, list(recipients)))
        return True


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def razorpay_client():
    return FakeRazorpayClient()


@pytest.fixture
def gateway(razorpay_client):
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret=KEY_SECRET,
        webhook_secret=WEBHOOK_SECRET,
        client=razorpay_client,
    )


@pytest.fixture
def sms():
    return RecordingSMS()


@pytest.fixture
def email():
    return RecordingEmail()


@pytest.fixture
def clock():
    class Clock:
        now = 1000.0

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(MemoryWindowStore(clock=clock), max_requests=3, window_seconds=60)


@pytest.fixture
def storage(tmp_path):
    return SlipStorage(base_dir=str(tmp_path / "uploads"), max_bytes=5 * 1024 * 1024)


@pytest_asyncio.fixture
async def client(session_factory, gateway, sms, email, rate_limiter, storage):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_sms_client] = lambda: sms
    app.dependency_overrides[get_email_service] = lambda: email
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_slip_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def user(session):
    user = User(phone="+919876543210")
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def user_with_details(session, user):
    user.name = "Ravi Kumar"
    user.email = "ravi.kumar@example.com"
    user.passport_number = "K1234567"
    user.appointment_details = {
        "appointment_type": "employment_visa",
        "preferred_date": (date.today() + timedelta(days=7)).isoformat(),
        "medical_center": "kochi",
        "additional_notes": "",
    }
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
def user_token(user):
    return create_access_token({"id": str(user.id), "phone": user.phone, "type": "user"})


@pytest_asyncio.fixture
async def admin(session):
    admin = Admin(username="gamca_admin", password_hash=get_password_hash("s3cret-pass"))
    session.add(admin)
    await session.commit()
    await session.refresh(admin)
    return admin


@pytest.fixture
def admin_token(admin):
    return create_access_token({"id": str(admin.id), "username": admin.username, "type": "admin"})
