import os
import re

from lead_orders.errors import ConfigurationError
from lead_orders.models import AddressPolicy, StoreCredential

# Outbound timeouts (seconds). Shopify calls are short; the lead backend may run slow downstream checks.
SHOPIFY_HTTP_TIMEOUT = float(os.getenv("SHOPIFY_HTTP_TIMEOUT", "20"))
LEAD_BACKEND_TIMEOUT = float(os.getenv("LEAD_BACKEND_TIMEOUT", "120"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Comma-separated; "*" for the embedded admin dev setup
CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

# Address policy applied to every created order (not caller supplied)
ORDER_DEFAULT_COUNTRY = os.getenv("ORDER_DEFAULT_COUNTRY", "United States")
ORDER_DEFAULT_COUNTRY_CODE = os.getenv("ORDER_DEFAULT_COUNTRY_CODE", "US")
ORDER_DEFAULT_PROVINCE = os.getenv("ORDER_DEFAULT_PROVINCE", "California")
ORDER_DEFAULT_PROVINCE_CODE = os.getenv("ORDER_DEFAULT_PROVINCE_CODE", "CA")
ORDER_DEFAULT_CITY = os.getenv("ORDER_DEFAULT_CITY", "West Hollywood")


def address_policy() -> AddressPolicy:
    return AddressPolicy(
        country=ORDER_DEFAULT_COUNTRY,
        country_code=ORDER_DEFAULT_COUNTRY_CODE,
        province=ORDER_DEFAULT_PROVINCE,
        province_code=ORDER_DEFAULT_PROVINCE_CODE,
        city=ORDER_DEFAULT_CITY,
    )


def _normalize_shop_domain(val: str) -> str:
    v = (val or "").strip()
    # remove protocol if provided and any stray whitespace or slashes
    if v.lower().startswith("https://"):
        v = v[8:]
    elif v.lower().startswith("http://"):
        v = v[7:]
    v = v.strip().strip("/\t\n\r ")
    return v


# -------- Multi-store helpers --------
def _store_suffix(store: str | None) -> str:
    s = (store or "").strip()
    if not s:
        return ""
    s = re.sub(r"[^A-Za-z0-9]", "_", s.upper())
    return f"_{s}"


def _env_for_store(base: str, store: str | None) -> str:
    suf = _store_suffix(store)
    if suf:
        val = os.getenv(f"{base}{suf}", "")
        if val:
            return val
    return os.getenv(base, "")


def resolve_store_credential(store: str | None = None) -> StoreCredential:
    """Resolve the Admin API credential for the given store.

    Precedence:
      - If store provided, read SHOPIFY_*_{STORE} vars; fallback to base SHOPIFY_* when missing
      - If no store provided, use base SHOPIFY_* values

    The API version has no default: which Admin API version the store is pinned to
    is a deployment decision, so it must be configured explicitly.
    """
    shop = _normalize_shop_domain(_env_for_store("SHOPIFY_SHOP_DOMAIN", store))
    token = _env_for_store("SHOPIFY_ACCESS_TOKEN", store).strip()
    version = _env_for_store("SHOPIFY_API_VERSION", store).strip()
    missing = [
        name
        for name, val in (
            ("SHOPIFY_SHOP_DOMAIN", shop),
            ("SHOPIFY_ACCESS_TOKEN", token),
            ("SHOPIFY_API_VERSION", version),
        )
        if not val
    ]
    if missing:
        raise ConfigurationError(f"Shop or access token missing ({', '.join(missing)} not set)")
    return StoreCredential(shop=shop, access_token=token, api_version=version)


def lead_backend_url() -> str:
    base = (os.getenv("LEAD_BACKEND_URL", "") or "").strip().rstrip("/")
    if not base:
        raise ConfigurationError("LEAD_BACKEND_URL is not set. Please configure LEAD_BACKEND_URL env var.")
    return base
