import logging

import requests

from lead_orders.config import SHOPIFY_HTTP_TIMEOUT
from lead_orders.errors import RemoteError, redact, remote_error_detail
from lead_orders.models import StoreCredential

logger = logging.getLogger("lead_orders.shopify")


def _headers(cred: StoreCredential) -> dict:
    return {
        "X-Shopify-Access-Token": cred.access_token,
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _raise_remote(cred: StoreCredential, method: str, path: str, exc: requests.exceptions.RequestException):
    r = getattr(exc, "response", None)
    status = getattr(r, "status_code", None)
    if r is not None:
        detail = redact(remote_error_detail(r), cred.access_token) or redact(str(exc), cred.access_token)
    else:
        detail = f"Failed to reach Shopify: {redact(str(exc), cred.access_token)[:500]}"
    logger.warning("[shopify] %s %s failed store=%s status=%s detail=%s", method, path, cred.shop, status, detail[:500])
    raise RemoteError(
        f"[store={cred.shop}] Shopify {method} {path} failed: {detail}"[:2000],
        service="shopify",
        status_code=status,
        detail=detail,
    ) from exc


# Single attempt per call; nothing here is retried.
def _rest_get(cred: StoreCredential, path: str) -> dict:
    url = f"{cred.base_url}{path}"
    try:
        r = requests.get(url, headers=_headers(cred), timeout=SHOPIFY_HTTP_TIMEOUT)
        r.raise_for_status()
    except requests.exceptions.RequestException as e:
        _raise_remote(cred, "GET", path, e)
    return r.json() if r.content else {}


def _rest_post(cred: StoreCredential, path: str, payload: dict) -> dict:
    url = f"{cred.base_url}{path}"
    try:
        r = requests.post(url, headers=_headers(cred), json=payload, timeout=SHOPIFY_HTTP_TIMEOUT)
        r.raise_for_status()
    except requests.exceptions.RequestException as e:
        _raise_remote(cred, "POST", path, e)
    return r.json() if r.content else {}


def get_product(cred: StoreCredential, numeric_product_id: int) -> dict:
    data = _rest_get(cred, f"/products/{numeric_product_id}.json")
    return (data or {}).get("product") or {}


def create_order(cred: StoreCredential, order_payload: dict) -> dict:
    """POST /orders.json and return the created order record as Shopify sent it."""
    data = _rest_post(cred, "/orders.json", order_payload)
    order = (data or {}).get("order")
    if not isinstance(order, dict) or order.get("id") is None:
        raise RemoteError(
            f"[store={cred.shop}] Shopify order response missing order id",
            service="shopify",
            detail="Order response missing order id",
        )
    return order


def create_order_metafield(cred: StoreCredential, order_id: int, metafield: dict) -> dict:
    data = _rest_post(cred, f"/orders/{order_id}/metafields.json", {"metafield": metafield})
    return (data or {}).get("metafield") or {}
