import json
import logging

from lead_orders import config
from lead_orders.errors import (
    ConfigurationError,
    PartialWriteWarning,
    ResolutionError,
    error_message,
    redact,
)
from lead_orders.integrations import shopify_client
from lead_orders.models import (
    AddressPolicy,
    Demographics,
    LeadSubmission,
    MetafieldOutcome,
    OrderCreationResult,
    ProductReference,
    StoreCredential,
)

logger = logging.getLogger("lead_orders.orders")

METAFIELD_NAMESPACE = "demographics"


def resolve_variant_id(cred: StoreCredential, ref: ProductReference) -> int:
    """Return the variant id to put on the order.

    Variant references resolve locally. Product references cost one
    GET /products/{id}.json and resolve to the first listed variant.
    """
    if ref.kind == "variant":
        return ref.numeric_id
    product = shopify_client.get_product(cred, ref.numeric_id)
    variants = product.get("variants") or []
    variant_id = (variants[0] or {}).get("id") if variants else None
    if not variant_id:
        raise ResolutionError(f"No variant found for product {ref.numeric_id}")
    return int(variant_id)


def build_address(sub: LeadSubmission, policy: AddressPolicy) -> dict:
    return {
        "first_name": sub.first_name,
        "last_name": sub.last_name,
        "address1": sub.street_address,
        "address2": sub.street_address2 or "",
        "city": policy.city,
        "province": policy.province,
        "province_code": policy.province_code,
        "country": policy.country,
        "country_code": policy.country_code,
        "zip": sub.post_code,
    }


def build_order_payload(sub: LeadSubmission, variant_id: int, policy: AddressPolicy) -> dict:
    addr = build_address(sub, policy)
    return {
        "order": {
            "email": sub.email,
            "line_items": [{"variant_id": variant_id, "quantity": 1}],
            "shipping_address": addr,
            "billing_address": dict(addr),
            "customer": {
                "first_name": sub.first_name,
                "last_name": sub.last_name,
                "email": sub.email,
            },
            "note_attributes": [
                {"name": "Street Address 2", "value": sub.street_address2 or ""},
            ],
        }
    }


def build_demographic_metafields(d: Demographics) -> list[dict]:
    text = "single_line_text_field"
    return [
        {"namespace": METAFIELD_NAMESPACE, "key": "age", "type": text, "value": d.age},
        {"namespace": METAFIELD_NAMESPACE, "key": "gender", "type": text, "value": d.gender},
        {"namespace": METAFIELD_NAMESPACE, "key": "identity", "type": text, "value": d.identity},
        {"namespace": METAFIELD_NAMESPACE, "key": "household_size", "type": text, "value": d.household_size},
        {"namespace": METAFIELD_NAMESPACE, "key": "ethnicity", "type": "json", "value": json.dumps(list(d.ethnicity))},
        {"namespace": METAFIELD_NAMESPACE, "key": "household_language", "type": "json", "value": json.dumps(list(d.household_language))},
    ]


def _write_metafields(cred: StoreCredential, order_id: int, metafields: list[dict]) -> list[MetafieldOutcome]:
    # Sequential; one failed key never stops the others
    outcomes: list[MetafieldOutcome] = []
    for m in metafields:
        try:
            shopify_client.create_order_metafield(cred, order_id, m)
            outcomes.append(MetafieldOutcome(key=m["key"], ok=True))
        except Exception as e:
            warning = PartialWriteWarning(m["key"], redact(error_message(e), cred.access_token))
            logger.warning("[orders] order=%s %s", order_id, warning)
            outcomes.append(MetafieldOutcome(key=m["key"], ok=False, warning=warning))
    return outcomes


def create_order_rest(
    cred: StoreCredential,
    sub: LeadSubmission,
    *,
    ref: ProductReference | None = None,
    address_policy: AddressPolicy | None = None,
) -> OrderCreationResult:
    """Create one Shopify order for a lead and attach its demographics as order metafields.

    Steps run strictly in sequence:
      1. preconditions (no network): shop/token present, email + product reference present
      2. variant resolution (0 or 1 product lookup)
      3. POST /orders.json; any failure raises RemoteError, never retried
      4. one metafield POST per demographic field; failures are recorded, not raised

    The returned result carries the created order whatever happened in step 4.
    `ref` is the already-parsed product reference when the caller has one.
    """
    if not cred.shop or not cred.access_token or not cred.api_version:
        raise ConfigurationError("shop, accessToken and apiVersion required")
    sub.require_orderable()
    if ref is None:
        ref = sub.product_reference()
    policy = address_policy or config.address_policy()

    variant_id = resolve_variant_id(cred, ref)
    logger.info("[orders] store=%s ref=%s:%s variant=%s", cred.shop, ref.kind, ref.numeric_id, variant_id)

    payload = build_order_payload(sub, variant_id, policy)
    order = shopify_client.create_order(cred, payload)
    order_id = order["id"]
    logger.info("[orders] store=%s created order=%s", cred.shop, order_id)

    outcomes = _write_metafields(cred, order_id, build_demographic_metafields(sub.demographics))
    failed = [o.key for o in outcomes if not o.ok]
    if failed:
        logger.warning("[orders] order=%s metafields not written: %s", order_id, ",".join(failed))
    return OrderCreationResult(order=order, metafields=outcomes)
