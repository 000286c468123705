import logging

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from lead_orders.config import LEAD_BACKEND_TIMEOUT, lead_backend_url
from lead_orders.errors import GENERIC_FAILURE, RemoteError, ValidationError, remote_error_detail

logger = logging.getLogger("lead_orders.lead_backend")

APPROVAL_VALUES = ("new", "approved", "rejected")

_headers = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def _fail(method: str, path: str, exc: requests.exceptions.RequestException):
    r = getattr(exc, "response", None)
    status = getattr(r, "status_code", None)
    detail = remote_error_detail(r) if r is not None else f"Failed to reach lead backend: {str(exc)[:500]}"
    logger.warning("[lead_backend] %s %s failed status=%s detail=%s", method, path, status, detail[:500])
    raise RemoteError(
        f"Lead backend {method} {path} failed: {detail}"[:2000],
        service="lead_backend",
        status_code=status,
        detail=detail,
    ) from exc


# Only reads retry, and only on transport errors.
@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=8),
    retry=retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout)),
    reraise=True,
)
def _get_with_retry(url: str, params: dict | None) -> requests.Response:
    r = requests.get(url, headers=_headers, params=params, timeout=LEAD_BACKEND_TIMEOUT)
    r.raise_for_status()
    return r


def _get(path: str, params: dict | None = None) -> dict:
    url = f"{lead_backend_url()}{path}"
    try:
        r = _get_with_retry(url, params)
    except requests.exceptions.RequestException as e:
        _fail("GET", path, e)
    return r.json() if r.content else {}


def _post(path: str, payload: dict) -> dict:
    url = f"{lead_backend_url()}{path}"
    try:
        r = requests.post(url, headers=_headers, json=payload, timeout=LEAD_BACKEND_TIMEOUT)
        r.raise_for_status()
    except requests.exceptions.RequestException as e:
        _fail("POST", path, e)
    return r.json() if r.content else {}


def _put(path: str, payload: dict) -> dict:
    url = f"{lead_backend_url()}{path}"
    try:
        r = requests.put(url, headers=_headers, json=payload, timeout=LEAD_BACKEND_TIMEOUT)
        r.raise_for_status()
    except requests.exceptions.RequestException as e:
        _fail("PUT", path, e)
    return r.json() if r.content else {}


def _delete(path: str, payload: dict | None = None) -> dict:
    url = f"{lead_backend_url()}{path}"
    try:
        r = requests.delete(url, headers=_headers, json=payload, timeout=LEAD_BACKEND_TIMEOUT)
        r.raise_for_status()
    except requests.exceptions.RequestException as e:
        _fail("DELETE", path, e)
    return r.json() if r.content else {}


def _accepted(data: dict) -> bool:
    # statusCode 200 and success true are both required
    return (data or {}).get("statusCode") == 200 and (data or {}).get("success") is True


def submit_lead(payload: dict) -> dict:
    """POST {base}/order. Returns the backend body when it reports statusCode 200 and success true."""
    data = _post("/order", payload)
    if not _accepted(data):
        message = (data or {}).get("message") or GENERIC_FAILURE
        logger.info("[lead_backend] lead rejected statusCode=%s message=%s", (data or {}).get("statusCode"), message)
        raise RemoteError(message, service="lead_backend", status_code=(data or {}).get("statusCode"), detail=message)
    return data


# ---------------- Admin: reports ----------------
def _report_params(page: int, limit: int, filter: str, q: str, state: str, medication: str, age: str, status: str) -> dict:
    params = {"page": page, "limit": limit, "filter": filter}
    # blank filters are omitted
    for k, v in (("q", q), ("state", state), ("medication", medication), ("age", age), ("status", status)):
        if v:
            params[k] = v
    return params


def list_reports(
    page: int = 1,
    limit: int = 15,
    filter: str = "all",
    q: str = "",
    state: str = "",
    medication: str = "",
    age: str = "",
    status: str = "",
) -> dict:
    """List lead reports, newest first, as {reports: [...], metadata: {...}}.

    The "approved" view shows auto-approved reports when nothing on that page was
    approved manually.
    """
    flt = (filter or "all").strip() or "all"
    if flt == "approved":
        probe = _get("/admin/reports", {"page": page, "limit": limit, "filter": "approved"})
        if not ((probe or {}).get("data") or {}).get("reports"):
            flt = "auto-approved"
    data = _get("/admin/reports", _report_params(page, limit, flt, q, state, medication, age, status))
    body = (data or {}).get("data") or {}
    return {
        "filter": flt,
        "reports": body.get("reports") or [],
        "metadata": body.get("metadata") or {},
    }


def delete_report(report_id: str) -> dict:
    data = _delete(f"/admin/reports/{report_id}")
    return {"id": report_id, "message": (data or {}).get("message") or "Report deleted"}


def bulk_delete_reports(ids: list[str]) -> dict:
    """DELETE /admin/bulk/delete with {ids}. The backend confirms with statusCode 200."""
    clean = [str(i).strip() for i in (ids or []) if str(i or "").strip()]
    if not clean:
        raise ValidationError("ids required", fields=["ids"])
    data = _delete("/admin/bulk/delete", {"ids": clean})
    if (data or {}).get("statusCode") != 200:
        message = (data or {}).get("message") or "Error while deleting"
        raise RemoteError(message, service="lead_backend", status_code=(data or {}).get("statusCode"), detail=message)
    return {"ids": clean, "message": (data or {}).get("message") or "All entries deleted"}


def set_report_approval(report_id: str, value: str) -> dict:
    v = (value or "").strip().lower()
    if v not in APPROVAL_VALUES:
        raise ValidationError(f"isApproved must be one of {', '.join(APPROVAL_VALUES)}", fields=["isApproved"])
    _put(f"/admin/request-approval/{report_id}", {"isApproved": v})
    return {"id": report_id, "isQualify": v}


# ---------------- Admin: subscriptions ----------------
def list_subscriptions(page: int = 1, limit: int = 15) -> dict:
    data = _get("/order", {"page": page, "limit": limit})
    return {
        "subscriptions": (data or {}).get("data") or [],
        "page": (data or {}).get("page", page),
        "limit": (data or {}).get("limit", limit),
        "total": (data or {}).get("total", 0),
        "totalPages": (data or {}).get("totalPages", 1),
    }


def cancel_subscription(subscription_id: str) -> dict:
    _put(f"/order/{subscription_id}", {"isActive": False})
    return {"id": subscription_id, "isActive": False}
