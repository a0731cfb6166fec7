import sys
import os
from datetime import datetime, timedelta
from decimal import Decimal
import pytest

# ensure repository root is on sys.path so `fasticket` package can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Ensure tests have a DATABASE_URL so importing app.config doesn't raise
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
from fasticket.app import create_app, db
from fasticket.app.auth.tokens import create_access_token
from fasticket.app.config import Config
from fasticket.app.models import Event, EventStatus, Organization, OrganizationMember, OrganizationRole, Profile
from fasticket.app.utils.slugs import unique_slug


# Config fields are Final-annotated, so the test config is a standalone class
# rather than a subclass that redeclares them.
class TestConfig:
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    SECRET_KEY = getattr(Config, "SECRET_KEY", "test-secret")
    ACCESS_TOKEN_SALT = "test-access-token"
    ACCESS_TOKEN_MAX_AGE = 3600
    MAX_TICKETS_PER_BOOKING = 10
    EVENTS_PAGE_SIZE = 20
    EVENTS_MAX_PAGE_SIZE = 100
    SUPPORTED_LOCALES = ("en", "tr")


@pytest.fixture
def app():
    app = create_app(TestConfig)
    # each request pushes its own app context so the logged-in user is not
    # cached in `g` from one call to the next
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_profile(app):
    def _make(email, fullname='Test User', password='secret123'):
        with app.app_context():
            p = Profile(email=email, fullname=fullname)
            p.set_password(password)
            db.session.add(p)
            db.session.commit()
            return p.id
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(profile_id):
        with app.app_context():
            token = create_access_token(db.session.get(Profile, profile_id))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def make_org(app):
    def _make(owner_id, name='Acme Events', members=()):
        with app.app_context():
            org = Organization(name=name, slug=unique_slug(Organization, name, fallback='org'), created_by=owner_id)
            db.session.add(org)
            db.session.flush()
            db.session.add(
                OrganizationMember(organization_id=org.id, user_id=owner_id, role=OrganizationRole.ORGANIZER.value)
            )
            for user_id, role in members:
                db.session.add(OrganizationMember(organization_id=org.id, user_id=user_id, role=role))
            db.session.commit()
            return org.id
    return _make


@pytest.fixture
def make_event(app):
    def _make(org_id, created_by, title='Launch Party', status=EventStatus.PUBLISHED.value, capacity=10,
              available=None, price=None, starts_in=timedelta(days=7), duration=timedelta(hours=3), **extra):
        start = datetime.utcnow().replace(microsecond=0) + starts_in
        with app.app_context():
            event = Event(
                organization_id=org_id,
                title=title,
                slug=unique_slug(Event, title, fallback='event'),
                start_date=start,
                end_date=start + duration,
                ticket_price=Decimal(price) if price is not None else Decimal('0'),
                is_free=price is None,
                total_capacity=capacity,
                available_capacity=capacity if available is None else available,
                status=status,
                created_by=created_by,
                **extra,
            )
            db.session.add(event)
            db.session.commit()
            return event.id
    return _make
