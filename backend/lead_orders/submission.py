import json
import logging
import re
from typing import Any, Iterable

from pydantic import ValidationError as PydanticValidationError

from lead_orders.config import resolve_store_credential
from lead_orders.errors import (
    GENERIC_FAILURE,
    OrderFlowError,
    ValidationError,
    error_message,
    redact,
)
from lead_orders.integrations import lead_backend
from lead_orders.models import LeadSubmission
from lead_orders.orders import create_order_rest

logger = logging.getLogger("lead_orders.submission")

_MULTI_KEYS = {"ethnicity", "household_language"}
# demographics[age], demographics[ethnicity][], demographics.age
_NESTED_KEY_RE = re.compile(r"^demographics(?:\[([A-Za-z_]+)\](?:\[\])?|\.([A-Za-z_]+))$")


def form_to_payload(items: Iterable[tuple[str, Any]]) -> dict:
    """Rebuild the nested submission dict from flat form fields.

    Demographics may arrive as one JSON-encoded `demographics` field or as
    bracketed/dotted keys; repeated keys become lists for the multi-valued fields.
    """
    payload: dict = {}
    demographics: dict = {}
    for key, value in items:
        if not isinstance(value, str):
            continue
        if key == "demographics":
            try:
                parsed = json.loads(value) if value.strip() else {}
            except ValueError:
                raise ValidationError("demographics must be a JSON object", fields=["demographics"])
            if not isinstance(parsed, dict):
                raise ValidationError("demographics must be a JSON object", fields=["demographics"])
            demographics.update(parsed)
            continue
        m = _NESTED_KEY_RE.match(key)
        if m:
            field = m.group(1) or m.group(2)
            if field in _MULTI_KEYS:
                demographics.setdefault(field, [])
                if not isinstance(demographics[field], list):
                    demographics[field] = [demographics[field]]
                demographics[field].append(value)
            else:
                demographics[field] = value
            continue
        payload[key] = value
    if demographics:
        payload["demographics"] = demographics
    return payload


def parse_submission(raw: Any) -> LeadSubmission:
    if not isinstance(raw, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return LeadSubmission.model_validate(raw)
    except PydanticValidationError as e:
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in e.errors()]
        raise ValidationError(f"Invalid submission: {', '.join(fields) or 'payload'}", fields=fields)


def _failure(message: str | None) -> dict:
    return {"success": False, "message": message or GENERIC_FAILURE}


def submit_lead_order(raw: Any, *, store: str | None = None) -> dict:
    """Handle one lead submission end to end and always return an envelope.

    Parse -> store credential -> lead backend -> order workflow. Anything that
    fails before the lead backend call makes no network call at all.
    """
    try:
        sub = parse_submission(raw)
        cred = resolve_store_credential(store)
        sub.require_orderable()
        ref = sub.product_reference()
    except OrderFlowError as e:
        logger.info("[submission] rejected before network: %s", e)
        return _failure(str(e))
    except Exception as e:
        logger.exception("[submission] unexpected error before network")
        return _failure(error_message(e))

    stage = "lead_backend"
    try:
        lead_backend.submit_lead(sub.lead_backend_payload())
        stage = "order"
        result = create_order_rest(cred, sub, ref=ref)
    except OrderFlowError as e:
        message = redact(error_message(e), cred.access_token)
        logger.warning("[submission] store=%s stage=%s failed: %s", cred.shop, stage, message)
        return _failure(message)
    except Exception as e:
        message = redact(error_message(e), cred.access_token)
        logger.exception("[submission] store=%s stage=%s unexpected error: %s", cred.shop, stage, message)
        return _failure(message)

    return {
        "success": True,
        "order": result.order,
        "metafields": [m.as_dict() for m in result.metafields],
    }
