import pytest
import requests

from conftest import LEADS
from lead_orders.errors import ConfigurationError, RemoteError, ValidationError
from lead_orders.integrations import lead_backend

REPORTS_URL = f"{LEADS}/admin/reports"


def _reports(*ids):
    return {
        "statusCode": 200,
        "data": {
            "reports": [{"_id": i, "isQualify": "new"} for i in ids],
            "metadata": {"total": len(ids), "page": 1, "limit": 15, "totalPages": 1},
        },
    }


def test_submit_lead_requires_both_flags(http, store_env):
    http.add("POST", f"{LEADS}/order", body={"statusCode": 200, "success": True})
    assert lead_backend.submit_lead({"email": "a@b.c"})["success"] is True

    http.routes.clear()
    http.add("POST", f"{LEADS}/order", body={"statusCode": "200", "success": True})
    with pytest.raises(RemoteError) as exc:
        lead_backend.submit_lead({"email": "a@b.c"})
    assert exc.value.service == "lead_backend"


def test_submit_lead_is_not_retried(http, store_env):
    http.add("POST", f"{LEADS}/order", error=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(RemoteError) as exc:
        lead_backend.submit_lead({})

    assert "Failed to reach lead backend" in exc.value.detail
    assert len(http.calls) == 1


def test_missing_backend_url(http, monkeypatch):
    monkeypatch.delenv("LEAD_BACKEND_URL", raising=False)
    with pytest.raises(ConfigurationError):
        lead_backend.submit_lead({})
    assert http.calls == []


def test_list_reports_passes_filters(http, store_env):
    http.add("GET", REPORTS_URL, body=_reports("a", "b"))

    out = lead_backend.list_reports(page=2, filter="new", q="jane", state="CA")

    assert [r["_id"] for r in out["reports"]] == ["a", "b"]
    assert out["metadata"]["totalPages"] == 1
    assert http.calls[0]["params"] == {"page": 2, "limit": 15, "filter": "new", "q": "jane", "state": "CA"}


def test_list_reports_approved_falls_back_to_auto_approved(http, store_env):
    http.add("GET", REPORTS_URL, body=_reports())
    http.add("GET", REPORTS_URL, body=_reports("auto-1"))

    out = lead_backend.list_reports(filter="approved")

    assert out["filter"] == "auto-approved"
    assert [r["_id"] for r in out["reports"]] == ["auto-1"]
    assert [c["params"]["filter"] for c in http.calls] == ["approved", "auto-approved"]


def test_list_reports_approved_keeps_manual_approvals(http, store_env):
    http.add("GET", REPORTS_URL, body=_reports("m-1"))

    out = lead_backend.list_reports(filter="approved", medication="x")

    assert out["filter"] == "approved"
    assert http.calls[-1]["params"]["medication"] == "x"


def test_list_reports_retries_transport_errors(http, store_env):
    http.add("GET", REPORTS_URL, error=requests.exceptions.ConnectionError("reset"))
    http.add("GET", REPORTS_URL, body=_reports("a"))

    out = lead_backend.list_reports()

    assert [r["_id"] for r in out["reports"]] == ["a"]
    assert len(http.calls) == 2


def test_list_reports_http_error_not_retried(http, store_env):
    http.add("GET", REPORTS_URL, status=403, body={"message": "forbidden"})

    with pytest.raises(RemoteError) as exc:
        lead_backend.list_reports()

    assert exc.value.detail == "forbidden"
    assert len(http.calls) == 1


def test_delete_report(http, store_env):
    http.add("DELETE", f"{REPORTS_URL}/r1", body={"statusCode": 200, "message": "Report removed"})
    assert lead_backend.delete_report("r1") == {"id": "r1", "message": "Report removed"}


def test_set_report_approval(http, store_env):
    http.add("PUT", f"{LEADS}/admin/request-approval/r1", body={"statusCode": 200})

    out = lead_backend.set_report_approval("r1", "Approved")

    assert out == {"id": "r1", "isQualify": "approved"}
    assert http.calls[0]["json"] == {"isApproved": "approved"}


def test_set_report_approval_rejects_unknown_value(http, store_env):
    with pytest.raises(ValidationError):
        lead_backend.set_report_approval("r1", "delete")
    assert http.calls == []


def test_list_and_cancel_subscriptions(http, store_env):
    http.add("GET", f"{LEADS}/order", body={
        "success": True,
        "data": [{"_id": "s1", "isActive": True}],
        "page": 1,
        "limit": 15,
        "total": 1,
        "totalPages": 1,
    })
    http.add("PUT", f"{LEADS}/order/s1", body={"success": True})

    listed = lead_backend.list_subscriptions()
    cancelled = lead_backend.cancel_subscription("s1")

    assert listed["subscriptions"][0]["_id"] == "s1"
    assert listed["total"] == 1
    assert cancelled == {"id": "s1", "isActive": False}
    assert http.calls[-1]["json"] == {"isActive": False}


def test_bulk_delete_reports(http, store_env):
    http.add("DELETE", f"{LEADS}/admin/bulk/delete", body={"statusCode": 200, "message": "3 reports deleted"})

    out = lead_backend.bulk_delete_reports(["r1", " r2 ", "r3"])

    assert out == {"ids": ["r1", "r2", "r3"], "message": "3 reports deleted"}
    assert http.calls[0]["json"] == {"ids": ["r1", "r2", "r3"]}


def test_bulk_delete_reports_requires_status_200(http, store_env):
    http.add("DELETE", f"{LEADS}/admin/bulk/delete", body={"statusCode": 404})

    with pytest.raises(RemoteError) as exc:
        lead_backend.bulk_delete_reports(["r1"])

    assert exc.value.detail == "Error while deleting"


def test_bulk_delete_reports_needs_ids(http, store_env):
    with pytest.raises(ValidationError):
        lead_backend.bulk_delete_reports(["", "  "])
    assert http.calls == []
