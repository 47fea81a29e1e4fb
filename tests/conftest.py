import os

# baza w pamieci - musi byc ustawione przed importem pakietu
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from storefront.api import deps
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import (
    DiscountModel,
    ProductImageModel,
    ProductModel,
    ProductVariantModel,
    UserModel,
)
from storefront.data.types import new_id
from storefront.main import app
from storefront.services.oauth_client import OAuthClient, OAuthProfile
from storefront.services.password_service import hash_password
from storefront.services.rate_limit_service import RateLimiter
from storefront.domain.errors import OAuthError

FIXED_NOW = 1_700_000_100


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))
        return self

    def expire(self, key, seconds):
        self.ops.append(("expire", key, seconds))
        return self

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "incr":
                self.redis.store[op[1]] = self.redis.store.get(op[1], 0) + 1
                results.append(self.redis.store[op[1]])
            else:
                self.redis.expiry[op[1]] = op[2]
                results.append(True)
        self.ops = []
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiry = {}

    def pipeline(self):
        return FakePipeline(self)


class FakePwnedClient:
    def __init__(self, breached=("password123", "qwertyuiop")):
        self.breached = set(breached)
        self.checked = []

    def is_breached(self, password):
        self.checked.append(password)
        return password in self.breached


class RecordingNotifications:
    def __init__(self):
        self.orders = []
        self.verification_codes = []
        self.reset_codes = []

    def send_order_confirmation(self, order_id):
        self.orders.append(order_id)

    def send_verification_code(self, email, code):
        self.verification_codes.append((email, code))

    def send_password_reset_code(self, email, code):
        self.reset_codes.append((email, code))


class FakeOAuthClient(OAuthClient):
    authorize_url = "https://provider.example.com/authorize"
    token_url = "https://provider.example.com/token"

    def __init__(self, provider, profile=None, fail=False, uses_pkce=False):
        super().__init__("client-id", "client-secret", f"http://testserver/auth/callback/{provider}")
        self.provider = provider
        self.profile = profile
        self.fail = fail
        self.uses_pkce = uses_pkce
        self.exchanged = []
        self.verifiers = []

    def exchange_code(self, code, code_verifier=None):
        if self.fail:
            raise OAuthError("token exchange failed")
        self.exchanged.append(code)
        self.verifiers.append(code_verifier)
        return f"token-{code}"

    def fetch_profile(self, access_token):
        return self.profile


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def pwned():
    return FakePwnedClient()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def oauth_clients():
    return {
        "github": FakeOAuthClient(
            "github",
            OAuthProfile(
                provider_id="gh-42",
                email="octo@example.com",
                first_name="Octo",
                last_name="Cat",
                email_verified=True,
            ),
        ),
        "google": FakeOAuthClient(
            "google",
            OAuthProfile(
                provider_id="g-7",
                email="jan@gmail.com",
                first_name="Jan",
                last_name="Kowalski",
                email_verified=True,
            ),
            uses_pkce=True,
        ),
    }


@pytest.fixture
def client(notifications, pwned, fake_redis, oauth_clients):
    limiter = RateLimiter(client=fake_redis, clock=lambda: FIXED_NOW)
    app.dependency_overrides[deps.get_notification_service] = lambda: notifications
    app.dependency_overrides[deps.get_pwned_client] = lambda: pwned
    app.dependency_overrides[deps.get_rate_limiter] = lambda: limiter
    app.dependency_overrides[deps.get_oauth_clients] = lambda: oauth_clients
    with TestClient(app) as c:
        yield c


# factories

@pytest.fixture
def make_product(db):
    def _make(name="LOP 65 Keyboard", category="keyboard", variants=(("Black", 1000, 10),), slug=None, image=True):
        product = ProductModel(
            slug=slug or name.lower().replace(" ", "-"),
            name=name,
            description=f"{name} description",
            category=category,
            features=[],
            specifications={},
        )
        db.add(product)
        db.flush()
        created = []
        for i, (variant_name, price, stock) in enumerate(variants):
            variant = ProductVariantModel(
                product_id=product.id,
                sku=f"{product.slug}-{i}",
                name=variant_name,
                price=price,
                stock_quantity=stock,
                attributes={},
            )
            db.add(variant)
            created.append(variant)
        if image:
            db.add(ProductImageModel(product_id=product.id, url=f"/images/{product.slug}.webp", alt=name, position=0))
        db.commit()
        return product, created

    return _make


@pytest.fixture
def make_variant(make_product):
    def _make(price=1000, stock=10, name="LOP 65 Keyboard", category="keyboard"):
        _, variants = make_product(name=name, category=category, variants=(("Default", price, stock),))
        return variants[0]

    return _make


@pytest.fixture
def make_user(db):
    def _make(email="jan@example.com", password="CorrectHorse9", is_admin=False, status="active"):
        user_id = new_id()
        user = UserModel(
            id=user_id,
            email=email,
            password_hash=hash_password(password) if password else None,
            provider="email",
            provider_id=user_id,
            first_name="Jan",
            last_name="Kowalski",
            is_admin=is_admin,
            status=status,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_discount(db):
    def _make(code="FIVEOFF", type="fixed", value=500, **kwargs):
        discount = DiscountModel(code=code, type=type, value=value, **kwargs)
        db.add(discount)
        db.commit()
        return discount

    return _make


@pytest.fixture
def address():
    return {
        "first_name": "Jan",
        "last_name": "Kowalski",
        "address1": "Marszalkowska 1",
        "city": "Warszawa",
        "postal_code": "00-001",
        "country": "PL",
        "email": "jan@example.com",
    }
