from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Optional


# form input name -> FormData attribute
FIELD_NAMES: dict[str, str] = {
    "merchantName": "merchant_name",
    "upiId": "upi_id",
    "merchantMobile": "merchant_mobile",
    "merchantEmail": "merchant_email",
    "company": "company",
    "address": "address",
    "campaignId": "campaign_id",
}


@dataclass(slots=True)
class FormData:
    merchant_name: str = ""
    upi_id: str = ""
    merchant_mobile: str = ""
    merchant_email: str = ""
    company: str = ""
    address: str = ""
    campaign_id: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def initial(cls, campaign_id: str = "", company: str = "") -> "FormData":
        return cls(campaign_id=campaign_id, company=company)

    @staticmethod
    def field_for(name: str) -> Optional[str]:
        if name in FIELD_NAMES:
            return FIELD_NAMES[name]
        if name in FIELD_NAMES.values():
            return name
        return None

    def copy(self) -> "FormData":
        return replace(self)

    def to_payload(self) -> dict[str, Any]:
        """JSON body expected by the merchant creation endpoint."""
        return {
            "merchantName": self.merchant_name,
            "upiId": self.upi_id,
            "merchantMobile": self.merchant_mobile,
            "merchantEmail": self.merchant_email,
            "company": self.company,
            "address": self.address,
            "campaignId": self.campaign_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class MerchantRecord:
    id: str
    merchant_name: str = ""
    merchant_code: str = ""
    qr_link: str = ""

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "MerchantRecord":
        code = raw.get("merchantCode")
        if isinstance(code, Mapping):
            code = code.get("_id", "")
        return cls(
            id=str(raw.get("id") or raw.get("_id") or ""),
            merchant_name=str(raw.get("merchantName") or ""),
            merchant_code=str(code or ""),
            qr_link=str(raw.get("qrLink") or ""),
        )


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    message: str
    merchant: MerchantRecord


class FormStep(Enum):
    DETAILS = "details"
    PAYMENT = "payment"
    SUBMITTING = "submitting"
    DONE = "done"

    @property
    def number(self) -> int:
        """Step shown to the user: 1 for details, 2 for payment info."""
        return 2 if self in (FormStep.PAYMENT, FormStep.SUBMITTING) else 1


class IllegalTransition(RuntimeError):
    def __init__(self, current: FormStep, target: FormStep) -> None:
        super().__init__(f"Cannot move from {current.name} to {target.name}")
        self.current = current
        self.target = target


TRANSITIONS: dict[FormStep, frozenset[FormStep]] = {
    FormStep.DETAILS: frozenset({FormStep.PAYMENT}),
    FormStep.PAYMENT: frozenset({FormStep.DETAILS, FormStep.SUBMITTING}),
    FormStep.SUBMITTING: frozenset({FormStep.PAYMENT, FormStep.DONE}),
    FormStep.DONE: frozenset({FormStep.DETAILS}),
}


@dataclass(slots=True)
class UIState:
    step: FormStep = FormStep.DETAILS
    error: str = ""
    success: str = ""
    loading: bool = False
    location_loading: bool = False
    qr_loading: bool = False
    dialog_open: bool = False
    qr_image: Optional[str] = None

    @property
    def can_submit(self) -> bool:
        return not (self.loading or self.location_loading)

    def clear_messages(self) -> None:
        self.error = ""
        self.success = ""

    def move_to(self, target: FormStep) -> None:
        if target not in TRANSITIONS[self.step]:
            raise IllegalTransition(self.step, target)
        self.step = target


@dataclass(slots=True)
class RowContext:
    display_index: int
    merchant_name: str
    merchant_mobile: str
    merchant_email: str
    upi_id: str
    company: str
    address: str
    campaign_id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def form_fields(self) -> dict[str, str]:
        """Values keyed by form input name, as the controller receives them."""
        return {
            "merchantName": self.merchant_name,
            "merchantMobile": self.merchant_mobile,
            "merchantEmail": self.merchant_email,
            "upiId": self.upi_id,
            "company": self.company,
            "address": self.address,
            "campaignId": self.campaign_id,
        }
