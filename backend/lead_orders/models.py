import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lead_orders.errors import PartialWriteWarning, ResolutionError, ValidationError

_TRAILING_ID_RE = re.compile(r"/([0-9]+)$")
_VARIANT_MARKER_RE = re.compile(r"ProductVariant", re.IGNORECASE)


class ProductReference(BaseModel):
    """A product reference parsed once at the boundary into {kind, numeric_id}."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["variant", "product"]
    numeric_id: int


def _numeric_id(raw: str) -> int | None:
    s = (raw or "").strip()
    m = _TRAILING_ID_RE.search(s)
    if m:
        digits = m.group(1)
    elif s.isascii() and s.isdecimal():
        digits = s
    else:
        return None
    # Shopify ids are 64-bit; longer runs also trip int() string conversion limits
    if len(digits) > 19:
        return None
    try:
        value = int(digits)
    except ValueError:
        return None
    return value if value < 2**63 else None


def parse_product_reference(raw: str, kind: str | None = None) -> ProductReference:
    """Parse a GID (gid://shopify/ProductVariant/555) or bare id ("555") into a ProductReference.

    When `kind` is not given, references mentioning ProductVariant are variants and
    everything else is treated as a product.
    """
    s = str(raw or "").strip()
    if not s:
        raise ValidationError("productId required", fields=["productId"])
    numeric = _numeric_id(s)
    if not numeric:
        raise ResolutionError(f"Unrecognised product reference: {s[:80]!r}")
    if kind is None:
        kind = "variant" if _VARIANT_MARKER_RE.search(s) else "product"
    if kind not in ("variant", "product"):
        raise ValidationError(f"Invalid productKind: {kind!r}", fields=["productKind"])
    return ProductReference(kind=kind, numeric_id=numeric)


class StoreCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    shop: str
    access_token: str = Field(repr=False)
    api_version: str

    @property
    def base_url(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}"


class AddressPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: str
    country_code: str
    province: str
    province_code: str
    city: str


def _as_text(v: Any) -> str:
    if v is None:
        return ""
    return str(v).strip()


class Demographics(BaseModel):
    model_config = ConfigDict(frozen=True)

    age: str = ""
    gender: str = ""
    identity: str = ""
    household_size: str = ""
    ethnicity: List[str] = []
    household_language: List[str] = []

    @field_validator("age", "gender", "identity", "household_size", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _as_text(v)

    @field_validator("ethnicity", "household_language", mode="before")
    @classmethod
    def _coerce_multi(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, (list, tuple)):
            return [_as_text(x) for x in v if _as_text(x)]
        return [_as_text(v)]


class LeadSubmission(BaseModel):
    """One inbound lead: contact, address, product reference and demographics."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    street_address: str = Field("", alias="streetAddress")
    street_address2: Optional[str] = Field(None, alias="streetAddress2")
    post_code: str = Field("", alias="postCode")
    email: str = ""
    product_id: str = Field("", alias="productId")
    product_kind: Optional[Literal["variant", "product"]] = Field(None, alias="productKind")
    subscription: Optional[str] = None
    demographics: Demographics = Demographics()

    @field_validator("first_name", "last_name", "street_address", "post_code", "email", "product_id", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return _as_text(v)

    @field_validator("street_address2", "subscription", "product_kind", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        s = _as_text(v)
        return s or None

    @field_validator("demographics", mode="before")
    @classmethod
    def _default_demographics(cls, v):
        return v if v is not None else {}

    def require_orderable(self) -> None:
        """Raise ValidationError unless email and product reference are both present."""
        missing = []
        if not self.email:
            missing.append("email")
        if not self.product_id:
            missing.append("productId")
        if missing:
            raise ValidationError(f"{' and '.join(missing)} required", fields=missing)

    def product_reference(self) -> ProductReference:
        return parse_product_reference(self.product_id, self.product_kind)

    def lead_backend_payload(self) -> dict:
        d = self.demographics
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "streetAddress": self.street_address,
            "streetAddress2": self.street_address2,
            "postCode": self.post_code,
            "subscription": self.subscription,
            "email": self.email,
            "productId": self.product_id,
            "age": d.age,
            "gender": d.gender,
            "identity": d.identity,
            "household_size": d.household_size,
            "ethnicity": list(d.ethnicity),
            "household_language": list(d.household_language),
        }


class MetafieldOutcome(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    ok: bool
    warning: Optional[PartialWriteWarning] = None

    def as_dict(self) -> dict:
        out: dict = {"key": self.key, "ok": self.ok}
        if self.warning is not None:
            out["error"] = str(self.warning)
        return out


class OrderCreationResult(BaseModel):
    """Created order (primary outcome) plus per-metafield diagnostics (secondary)."""

    order: dict
    metafields: List[MetafieldOutcome] = []

    @property
    def success(self) -> bool:
        return True

    @property
    def order_id(self) -> int | None:
        return self.order.get("id")

    @property
    def warnings(self) -> list[PartialWriteWarning]:
        return [m.warning for m in self.metafields if m.warning is not None]
