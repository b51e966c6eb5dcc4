from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
import fakeredis
from jose import jwt
import pytest

# Load environment variables for tests before the package reads its settings
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from spa_booking.core.config import settings  # noqa: E402
from spa_booking.database import Base  # noqa: E402
from spa_booking.models import Booking, BookingStatus, Service, Therapist  # noqa: E402
from spa_booking.utils import redis_cache  # noqa: E402
from spa_booking.utils.status_logger import register_status_listeners  # noqa: E402


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Route the booking throttle to an in-memory Redis."""
    fake = fakeredis.FakeStrictRedis(decode_responses=True)
    monkeypatch.setattr(redis_cache, 'get_redis_client', lambda: fake)
    return fake


@pytest.fixture
def Session():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    register_status_listeners()
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db(Session):
    session = Session()
    try:
        yield session
    finally:
        session.close()


def make_service(db, title='Swedish Massage', price=1000, duration_minutes=60):
    service = Service(title=title, price=Decimal(str(price)), duration_minutes=duration_minutes)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def make_therapist(db, name='Ana', blockouts=None, active=True):
    therapist = Therapist(name=name, active=active, unavailable_blockouts=blockouts or [])
    db.add(therapist)
    db.commit()
    db.refresh(therapist)
    return therapist


def make_booking(
    db,
    service,
    therapist=None,
    status=BookingStatus.PENDING,
    booking_date=date(2030, 1, 15),
    booking_time=time(18, 0),
    **fields,
):
    booking = Booking(
        service_id=service.id,
        therapist_id=therapist.id if therapist else None,
        booking_date=booking_date,
        booking_time=booking_time,
        status=status,
        guest_name=fields.pop('guest_name', 'Guest'),
        guest_phone=fields.pop('guest_phone', '09171234567'),
        **fields,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def create_access_token(subject, role=None, email=None, name=None, expires_delta=timedelta(hours=12)):
    """Sign a token the way the site's identity provider does."""
    payload = {'sub': subject, 'exp': datetime.now(timezone.utc) + expires_delta}
    for claim, value in (('role', role), ('email', email), ('name', name)):
        if value:
            payload[claim] = value
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
