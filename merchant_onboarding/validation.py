"""Field validation for the two registration steps.

Each check runs in a fixed order and the first failure wins; the validators
return the user-facing message or ``None`` when the step is valid.
"""

from __future__ import annotations

import re
from typing import Optional

from .models import FormData

MOBILE_PATTERN = re.compile(r"^\d{10}$", re.ASCII)
UPI_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+$", re.ASCII)

MSG_NAME_REQUIRED = "Merchant name is required"
MSG_MOBILE_REQUIRED = "Mobile number is required"
MSG_MOBILE_INVALID = "Please enter a valid 10-digit mobile number"
MSG_EMAIL_INVALID = "Please enter a valid email address"
MSG_LOCATION_REQUIRED = (
    "Location access is required to proceed. Please enable location sharing and refresh the page"
)
MSG_UPI_REQUIRED = "UPI ID is required"
MSG_UPI_INVALID = "Please enter a valid UPI ID"
MSG_COMPANY_REQUIRED = "Company name is required"
MSG_CAMPAIGN_MISSING = "Campaign ID is missing"


def is_valid_mobile(mobile: str) -> bool:
    # fullmatch so a trailing newline is not accepted by "$"
    return MOBILE_PATTERN.fullmatch(mobile) is not None


def is_valid_upi(upi: str) -> bool:
    return UPI_PATTERN.fullmatch(upi) is not None


def has_location(form: FormData) -> bool:
    return form.latitude is not None and form.longitude is not None


def validate_details(form: FormData) -> Optional[str]:
    """Step 1: merchant identity and location."""
    if not form.merchant_name.strip():
        return MSG_NAME_REQUIRED
    if not form.merchant_mobile.strip():
        return MSG_MOBILE_REQUIRED
    if not is_valid_mobile(form.merchant_mobile):
        return MSG_MOBILE_INVALID
    if form.merchant_email and "@" not in form.merchant_email:
        return MSG_EMAIL_INVALID
    if not has_location(form):
        return MSG_LOCATION_REQUIRED
    return None


def validate_payment(form: FormData) -> Optional[str]:
    """Step 2: payment address and campaign scoping."""
    if not form.upi_id.strip():
        return MSG_UPI_REQUIRED
    if not is_valid_upi(form.upi_id):
        return MSG_UPI_INVALID
    if not form.company.strip():
        return MSG_COMPANY_REQUIRED
    if not form.campaign_id:
        return MSG_CAMPAIGN_MISSING
    return None
