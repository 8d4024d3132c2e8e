import itertools
from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from extensions import db
from app.models.booking import Booking, BookingStatus
from app.models.listing import Listing, ListingStatus, PricingModel, CancellationPolicy
from app.models.user import User, UserRole, KYCStatus
from app.services.booking_security import calculate_booking_price, generate_handshake_code
from app.services.escrow_service import EscrowService

_counter = itertools.count(1)


def future_date(days=30):
    return datetime.utcnow().date() + timedelta(days=days)


@pytest.fixture
def app(tmp_path):
    app = create_app('testing')
    app.config['UPLOAD_FOLDER'] = str(tmp_path)

    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(email=None, host=False, admin=False, kyc=KYCStatus.NONE, password='secret123'):
        n = next(_counter)
        user = User(
            email=email or f'user{n}@example.com',
            username=f'user{n}',
            password=password,
            first_name='Test',
            last_name=f'User{n}',
            is_host=host,
            is_admin=admin,
            role=UserRole.ADMIN if admin else (UserRole.HOST if host else UserRole.GUEST),
            kyc_status=kyc,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def host(make_user):
    return make_user(host=True, kyc=KYCStatus.VERIFIED)


@pytest.fixture
def guest(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email='admin@example.com', admin=True)


@pytest.fixture
def make_listing(host):
    def _make_listing(owner=None, **overrides):
        fields = dict(
            host_id=(owner or host).id,
            title='Sunny Studio',
            description='Bright room for shoots',
            space_type='studio',
            location='Lekki, Lagos',
            address='12 Admiralty Way',
            price=100,
            pricing_model=PricingModel.DAILY,
            caution_fee=50,
            max_guests=4,
            cancellation_policy=CancellationPolicy.FLEXIBLE,
            status=ListingStatus.LIVE,
            availability={},
        )
        fields.update(overrides)
        listing = Listing(**fields)
        db.session.add(listing)
        db.session.commit()
        return listing
    return _make_listing


@pytest.fixture
def listing(make_listing):
    return make_listing()


@pytest.fixture
def hourly_listing(make_listing):
    day = future_date().isoformat()
    return make_listing(
        title='Meeting Room',
        price=20,
        pricing_model=PricingModel.HOURLY,
        caution_fee=0,
        availability={day: list(range(8, 20))},
    )


@pytest.fixture
def make_booking():
    def _make_booking(listing, guest, date=None, hours=None, duration=None, guest_count=1,
                      status=BookingStatus.CONFIRMED, paid=False, created_at=None):
        duration = duration or (len(hours) if hours else 1)
        booking = Booking(
            listing_id=listing.id,
            guest_id=guest.id,
            date=date or future_date(),
            duration=duration,
            hours=hours,
            guest_count=guest_count,
            status=status,
            created_at=created_at or datetime.utcnow(),
        )
        booking.apply_breakdown(calculate_booking_price(listing, duration, guest_count, hours))
        if status != BookingStatus.PENDING:
            booking.guest_code = generate_handshake_code()
        db.session.add(booking)
        db.session.flush()
        if paid:
            EscrowService.process_guest_payment(booking, guest.id)
        db.session.commit()
        return booking
    return _make_booking


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _auth_headers
