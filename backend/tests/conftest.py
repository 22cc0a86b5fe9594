"""
Pytest fixtures for marketplace backend tests.

Provides an in-memory database, test client, buyer/seller/admin profiles,
a product factory and a recorder that replaces the email provider call.
"""

import io

import httpx
import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import Product
from marketplace.models.accounts import ROLE_ADMIN, ROLE_BUYER, ROLE_SELLER
from marketplace.models.catalog import REVIEW_APPROVED
from marketplace.services import email_service, session_service
from marketplace.services.auth_service import create_profile


PASSWORD = "Password123!"

SELLER_ADDRESS = {
    "address_line1": "12 Piassa Road",
    "city": "Oakland",
    "state": "CA",
    "zip_code": "94607",
}


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
        'RESEND_API_KEY': 'test-key',
        'EMAIL_NOTIFICATIONS_ENABLED': True,
        'ADMIN_EMAIL': 'inbox@makhil.test',
        'BASE_URL': 'http://makhil.test',
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp('uploads')),
        'SHIPPING_FLAT_RATE_CENTS': 1000,
        'PLATFORM_FEE_PERCENTAGE': 10,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Record every payload handed to the email provider instead of sending it."""
    sent = []

    def fake_post(payload, api_key):
        sent.append(payload)
        return httpx.Response(200, json={"id": f"email_{len(sent)}"})

    monkeypatch.setattr(email_service, "_post_to_provider", fake_post)
    return sent


@pytest.fixture(scope='function')
def buyer(db_session):
    return create_profile(email="buyer@example.com", password=PASSWORD, full_name="Hanna Buyer", role=ROLE_BUYER)


@pytest.fixture(scope='function')
def other_buyer(db_session):
    return create_profile(email="other.buyer@example.com", password=PASSWORD, full_name="Selam Other", role=ROLE_BUYER)


@pytest.fixture(scope='function')
def seller(db_session):
    return create_profile(
        email="seller@example.com",
        password=PASSWORD,
        full_name="Meron Seller",
        role=ROLE_SELLER,
        phone="510-555-0100",
        address=SELLER_ADDRESS,
    )


@pytest.fixture(scope='function')
def other_seller(db_session):
    return create_profile(
        email="other.seller@example.com",
        password=PASSWORD,
        full_name="Tigist Seller",
        role=ROLE_SELLER,
        phone="510-555-0199",
        address=SELLER_ADDRESS,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    return create_profile(
        email="admin@example.com",
        password=PASSWORD,
        full_name="Ops Admin",
        role=ROLE_ADMIN,
        allow_admin=True,
    )


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: approved, active, one in stock unless overridden."""
    def _make(seller, **overrides):
        values = {
            "title": "Habesha Kemis",
            "description": "Handwoven cotton dress with tilet border",
            "price_cents": 15000,
            "condition": "like_new",
            "size": "M",
            "designer": "Saba Designs",
            "images": ["http://makhil.test/uploads/product-images/1/cover.jpg"],
            "tags": ["White", "Traditional", "Wedding"],
            "quantity_available": 1,
            "is_active": True,
            "review_status": REVIEW_APPROVED,
        }
        values.update(overrides)
        product = Product(seller_id=seller.id, **values)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(profile) -> dict:
    """Open a session for profile and return its Authorization headers."""
    _session, token = session_service.create_session(profile.id)
    return auth_headers(token)


def screenshot(name: str = "proof.png", content: bytes = b"\x89PNG fake image bytes"):
    """A multipart file tuple for payment screenshots and product photos."""
    return (io.BytesIO(content), name)


def shipping_form(**overrides) -> dict:
    form = {
        "line1": "455 Market St",
        "line2": "Apt 3",
        "city": "San Francisco",
        "state": "CA",
        "zip": "94105",
        "buyer_payment_email": "hanna.pay@example.com",
    }
    form.update(overrides)
    return form


@pytest.fixture(scope='function')
def place_order(db_session):
    """Factory: run a real checkout for buyer over the given products."""
    from werkzeug.datastructures import FileStorage

    from marketplace.services import checkout_service
    from marketplace.services.cart_service import Cart, CartLine, product_snapshot

    def _place(buyer, *products):
        cart = Cart(
            items=[CartLine(product=product_snapshot(p), quantity=1) for p in products],
            seller_id=products[0].seller_id,
        )
        stream, name = screenshot()
        return checkout_service.place_order(
            buyer=buyer,
            cart=cart,
            shipping=checkout_service.ShippingAddress(
                line1="455 Market St", city="San Francisco", state="CA", zip="94105",
            ),
            payment_screenshot=FileStorage(stream=stream, filename=name),
            buyer_payment_email="hanna.pay@example.com",
        )

    return _place
