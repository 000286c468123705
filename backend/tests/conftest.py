import json

import pytest
import requests

SHOP = "test-shop.myshopify.com"
TOKEN = "shpat_test_secret_token"
API_VERSION = "2025-10"
SHOP_BASE = f"https://{SHOP}/admin/api/{API_VERSION}"
LEADS = "https://leads.example.com/api/v1"


def _response(method: str, url: str, status: int, body) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.url = url
    r.reason = "OK" if status < 400 else "Error"
    r._content = b"" if body is None else json.dumps(body).encode()
    r.headers["Content-Type"] = "application/json"
    r.request = requests.Request(method, url).prepare()
    return r


class FakeHttp:
    """Stands in for requests.get/post/put/delete and records every call."""

    def __init__(self):
        self.calls = []
        self.routes = {}

    def add(self, method: str, url: str, status: int = 200, body=None, error: Exception | None = None):
        # queued per route; the last response repeats once the queue is drained
        self.routes.setdefault((method, url), []).append((status, body, error))
        return self

    def _handle(self, method: str, url: str, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        queue = self.routes.get((method, url))
        if not queue:
            return _response(method, url, 404, {"errors": "Not Found"})
        status, body, error = queue.pop(0) if len(queue) > 1 else queue[0]
        if error is not None:
            raise error
        return _response(method, url, status, body)

    def calls_to(self, method: str, url: str) -> list:
        return [c for c in self.calls if c["method"] == method and c["url"] == url]

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._handle("PUT", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._handle("DELETE", url, **kwargs)


@pytest.fixture
def http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr(requests, "get", fake.get)
    monkeypatch.setattr(requests, "post", fake.post)
    monkeypatch.setattr(requests, "put", fake.put)
    monkeypatch.setattr(requests, "delete", fake.delete)
    return fake


@pytest.fixture
def store_env(monkeypatch):
    monkeypatch.setenv("SHOPIFY_SHOP_DOMAIN", f"https://{SHOP}/")
    monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", TOKEN)
    monkeypatch.setenv("SHOPIFY_API_VERSION", API_VERSION)
    monkeypatch.setenv("LEAD_BACKEND_URL", LEADS + "/")


@pytest.fixture
def cred():
    from lead_orders.models import StoreCredential

    return StoreCredential(shop=SHOP, access_token=TOKEN, api_version=API_VERSION)


@pytest.fixture
def jane_payload() -> dict:
    return {
        "firstName": "Jane",
        "lastName": "Doe",
        "streetAddress": "1 Main St",
        "postCode": "90210",
        "email": "jane@x.com",
        "productId": "gid://shopify/Product/42",
        "demographics": {
            "age": "30-40",
            "gender": "F",
            "identity": "",
            "household_size": "2",
            "ethnicity": ["Asian"],
            "household_language": ["English"],
        },
    }


def shopify_happy_path(fake: FakeHttp, *, product_id: int = 42, variant_id: int = 999, order_id: int = 123):
    fake.add("GET", f"{SHOP_BASE}/products/{product_id}.json", body={"product": {"id": product_id, "variants": [{"id": variant_id}, {"id": variant_id + 1}]}})
    fake.add("POST", f"{SHOP_BASE}/orders.json", status=201, body={"order": {"id": order_id, "name": "#1001", "email": "jane@x.com"}})
    fake.add("POST", f"{SHOP_BASE}/orders/{order_id}/metafields.json", status=201, body={"metafield": {"id": 1}})
    return fake
