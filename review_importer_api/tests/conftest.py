"""
Shared fixtures: in-memory Redis and store repositories.
"""

import fnmatch
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from app.core.importer.coordinator import ImportContext
from app.core.importer.models import ProductRef, UserRef, ReviewRef, NewReview
from app.core.importer.session_store import UploadSessionStore
from app.core.importer.settings import ImporterSettings
from app.core.woo_client import WooCommerceError


HEADER = "SKU,Author Name,Author Email,Author IP,Review Date,Review Text,Review Stars"


class FakeRedis:
    """Async subset of redis.asyncio.Redis backed by dicts (decode_responses=True)."""

    def __init__(self):
        self.data: Dict[str, object] = {}
        self.ttls: Dict[str, int] = {}

    async def hset(self, key, mapping=None):
        bucket = self.data.setdefault(key, {})
        bucket.update({k: str(v) for k, v in (mapping or {}).items()})
        return len(mapping or {})

    async def hgetall(self, key):
        value = self.data.get(key)
        return dict(value) if isinstance(value, dict) else {}

    async def hget(self, key, field):
        value = self.data.get(key)
        return value.get(field) if isinstance(value, dict) else None

    async def expire(self, key, seconds):
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    async def get(self, key):
        value = self.data.get(key)
        return value if isinstance(value, str) else None

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def scan(self, cursor=0, match=None, count=None):
        keys = [k for k in self.data if match is None or fnmatch.fnmatch(k, match)]
        return 0, keys

    async def ping(self):
        return True

    def expire_now(self, key):
        """Simulate TTL expiry."""
        self.data.pop(key, None)
        self.ttls.pop(key, None)


class FakeProducts:
    def __init__(self, products: Optional[Dict[str, ProductRef]] = None):
        self.products = products or {}
        self.fail = False

    async def find_by_sku(self, sku: str) -> Optional[ProductRef]:
        if self.fail:
            raise WooCommerceError("HTTP 500: lookup failed")
        return self.products.get(sku)


class FakeUsers:
    def __init__(self, users: Optional[List[UserRef]] = None):
        self.users: List[UserRef] = list(users or [])
        self.fail_create = False
        self.taken_logins: set = set()
        self.created: List[Dict] = []

    async def find_by_email(self, email: str) -> Optional[UserRef]:
        for user in self.users:
            if user.email.lower() == email.lower():
                return user
        return None

    async def username_exists(self, username: str) -> bool:
        return any(u.username == username for u in self.users)

    async def create_customer(self, username, password, email, display_name) -> UserRef:
        if self.fail_create:
            raise WooCommerceError("HTTP 400: existing_user_email")
        if username in self.taken_logins:
            raise WooCommerceError("HTTP 400: {\"code\":\"existing_user_login\"}")
        user = UserRef(id=1000 + len(self.users), email=email, display_name=display_name, username=username)
        self.users.append(user)
        self.created.append({"username": username, "password": password, "email": email})
        return user

    async def get(self, user_id: int) -> Optional[UserRef]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None


class FakeReviews:
    def __init__(self):
        self.records: Dict[int, Dict] = {}
        self.fail_insert = False
        self._next_id = 500

    async def find_by_product_and_email(self, product_id: int, email: str) -> Optional[ReviewRef]:
        for review_id, record in sorted(self.records.items()):
            if record["product_id"] == product_id and record["author_email"] == email:
                return ReviewRef(id=review_id, product_id=product_id, author_email=email, status=record["status"])
        return None

    async def insert(self, review: NewReview) -> int:
        if self.fail_insert:
            raise WooCommerceError("HTTP 500: insert failed")
        self._next_id += 1
        self.records[self._next_id] = {
            "product_id": review.product_id,
            "author_name": review.author_name,
            "author_email": review.author_email,
            "author_ip": review.author_ip,
            "content": review.content,
            "date": review.date,
            "rating": review.rating,
            "status": "approved" if review.approved else "hold",
            "verified": review.verified,
            "user_id": review.user_id,
        }
        return self._next_id

    async def update_content(self, review_id: int, content: str, rating: int) -> None:
        self.records[review_id]["content"] = content
        self.records[review_id]["rating"] = rating


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return UploadSessionStore(fake_redis, ttl=3600)


@pytest.fixture
def products():
    return FakeProducts({
        "ABC123": ProductRef(id=10),
        "SHIRT-RED-M": ProductRef(id=21, is_variation=True, parent_id=20),
    })


@pytest.fixture
def users():
    return FakeUsers()


@pytest.fixture
def reviews():
    return FakeReviews()


@pytest.fixture
def importer_settings():
    return ImporterSettings(default_ip_address="10.0.0.1")


@pytest.fixture
def import_context(tmp_path, importer_settings, products, users, reviews, session_store):
    return ImportContext(
        store_id="my-store",
        settings=importer_settings,
        products=products,
        users=users,
        reviews=reviews,
        sessions=session_store,
        data_dir=tmp_path / "uploads",
        batch_size=2
    )


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a temp file and return its path."""
    def _write(text: str, name: str = "reviews.csv", encoding: str = "utf-8") -> str:
        path = tmp_path / name
        path.write_text(text, encoding=encoding, newline="")
        return str(path)
    return _write


@pytest.fixture
def stores_config(tmp_path, monkeypatch):
    """Point the app at a temp stores config with one store ('my-store')."""
    from app.config import get_settings

    path = tmp_path / "woo_config.json"
    path.write_text(json.dumps({
        "stores": {
            "My Store": {
                "store_url": "https://shop.example.com",
                "consumer_key": "ck_test",
                "consumer_secret": "cs_test",
                "api_key": "secret-key"
            }
        }
    }), encoding="utf-8")
    monkeypatch.setattr(get_settings(), "woo_config_path", str(path))
    return Path(path)
