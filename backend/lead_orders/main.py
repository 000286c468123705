from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel
import json
import logging

from lead_orders.config import CORS_ALLOW_ORIGINS, LOG_LEVEL
from lead_orders.errors import OrderFlowError, ValidationError, error_message
from lead_orders.integrations import lead_backend
from lead_orders.submission import form_to_payload, submit_lead_order

app = FastAPI(title="Lead Orders", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

# Basic logger for diagnostics (stdout captured by the container runtime)
logger = logging.getLogger("lead_orders")
if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(_handler)
logger.setLevel(LOG_LEVEL)


@app.get("/health")
def health():
    return {"ok": True}


async def _read_payload(request: Request):
    ct = (request.headers.get("content-type") or "").lower()
    if "application/json" in ct:
        body = await request.body()
        return json.loads(body or b"null")
    form = await request.form()
    return form_to_payload(form.multi_items())


@app.post("/api/create-order")
async def api_create_order(request: Request, store: str | None = None):
    # Every outcome is a 200 with {success, order|message}
    try:
        payload = await _read_payload(request)
    except ValidationError as e:
        return {"success": False, "message": str(e)}
    except Exception as e:
        logger.info("[create-order] unreadable body: %s", e)
        return {"success": False, "message": "Invalid request body"}
    # outbound calls are blocking requests calls
    return await run_in_threadpool(submit_lead_order, payload, store=store)


# ---------------- Lead backend admin proxy ----------------
def _proxy(fn, *args, **kwargs) -> dict:
    try:
        return {"data": fn(*args, **kwargs)}
    except OrderFlowError as e:
        return {"error": error_message(e)}
    except Exception as e:
        logger.exception("[admin] %s failed", getattr(fn, "__name__", "call"))
        return {"error": error_message(e)}


@app.get("/api/reports")
def api_list_reports(
    page: int = 1,
    limit: int = 15,
    filter: str = "all",
    q: str = "",
    state: str = "",
    medication: str = "",
    age: str = "",
    status: str = "",
):
    return _proxy(
        lead_backend.list_reports,
        page=page,
        limit=limit,
        filter=filter,
        q=q,
        state=state,
        medication=medication,
        age=age,
        status=status,
    )


@app.delete("/api/reports/{report_id}")
def api_delete_report(report_id: str):
    return _proxy(lead_backend.delete_report, report_id)


class ReportsBulkDeleteRequest(BaseModel):
    ids: list[str]


@app.post("/api/reports/bulk-delete")
def api_bulk_delete_reports(req: ReportsBulkDeleteRequest):
    return _proxy(lead_backend.bulk_delete_reports, req.ids)


class ReportApprovalRequest(BaseModel):
    isApproved: str


@app.put("/api/reports/{report_id}/approval")
def api_set_report_approval(report_id: str, req: ReportApprovalRequest):
    return _proxy(lead_backend.set_report_approval, report_id, req.isApproved)


@app.get("/api/subscriptions")
def api_list_subscriptions(page: int = 1, limit: int = 15):
    return _proxy(lead_backend.list_subscriptions, page=page, limit=limit)


@app.post("/api/subscriptions/{subscription_id}/cancel")
def api_cancel_subscription(subscription_id: str):
    return _proxy(lead_backend.cancel_subscription, subscription_id)
