import json

import requests

GENERIC_FAILURE = "Something went wrong"


class OrderFlowError(Exception):
    """Base class for failures that stop a lead submission."""


class ConfigurationError(OrderFlowError):
    """Store identity, access token, API version or backend URL is missing. Raised before any network call."""


class ValidationError(OrderFlowError):
    """Inbound payload could not be parsed, or a required field is empty."""

    def __init__(self, message: str, *, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class ResolutionError(OrderFlowError):
    """A product reference could not be mapped to a purchasable variant."""


class RemoteError(OrderFlowError):
    """
    Raised when the lead backend or the Shopify Admin API answers with a
    non-success response, or cannot be reached at all.
    """

    def __init__(
        self,
        message: str,
        *,
        service: str,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.detail = detail


class PartialWriteWarning(Warning):
    """A best-effort write (order metafield) failed after the order was created."""

    def __init__(self, key: str, message: str):
        super().__init__(f"metafield '{key}' not written: {message}")
        self.key = key


def redact(text: str | None, secret: str | None) -> str:
    s = str(text or "")
    if secret:
        s = s.replace(secret, "***")
    return s


def remote_error_detail(resp: requests.Response | None) -> str:
    # Shopify commonly returns: {"errors": "..."} (string or dict) or {error, errors, message}.
    if resp is None:
        return ""
    try:
        payload = resp.json()
        if isinstance(payload, dict):
            if payload.get("errors") is not None:
                err_obj = payload.get("errors")
                if isinstance(err_obj, (dict, list)):
                    return json.dumps(err_obj, ensure_ascii=False)
                return str(err_obj)
            if payload.get("error") is not None:
                return str(payload.get("error"))
            if payload.get("message") is not None:
                return str(payload.get("message"))
    except ValueError:
        pass
    return (resp.text or "").strip()


def error_message(exc: BaseException, fallback: str = GENERIC_FAILURE) -> str:
    """Pick the most useful message: remote error body, then exception text, then fallback."""
    if isinstance(exc, RemoteError) and exc.detail:
        return exc.detail
    msg = str(exc).strip()
    return msg or fallback
