from __future__ import annotations

import pytest

from merchant_onboarding.models import FormData
from merchant_onboarding import validation as v


def _details(**overrides) -> FormData:
    data = dict(
        merchant_name="Cafe X",
        merchant_mobile="9876543210",
        latitude=12.97,
        longitude=77.59,
    )
    data.update(overrides)
    return FormData(**data)


def _payment(**overrides) -> FormData:
    data = dict(upi_id="cafe@upi", company="Acme", campaign_id="abc123")
    data.update(overrides)
    return FormData(**data)


def test_valid_details_pass():
    assert v.validate_details(_details()) is None


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"merchant_name": "   "}, v.MSG_NAME_REQUIRED),
        ({"merchant_mobile": ""}, v.MSG_MOBILE_REQUIRED),
        ({"merchant_mobile": "12345"}, v.MSG_MOBILE_INVALID),
        ({"merchant_email": "cafe.example.com"}, v.MSG_EMAIL_INVALID),
        ({"latitude": None}, v.MSG_LOCATION_REQUIRED),
        ({"longitude": None}, v.MSG_LOCATION_REQUIRED),
    ],
)
def test_details_failures(overrides, message):
    assert v.validate_details(_details(**overrides)) == message


def test_details_first_failure_wins():
    form = _details(merchant_name="", merchant_mobile="12", latitude=None)
    assert v.validate_details(form) == v.MSG_NAME_REQUIRED


@pytest.mark.parametrize(
    "mobile",
    ["12345", "98765432101", "98765 43210", "+919876543210", "987654321a", "9876543210\n", "٩٨٧٦٥٤٣٢١٠"],
)
def test_bad_mobile_fails_regardless_of_other_fields(mobile):
    form = _details(merchant_mobile=mobile, merchant_email="ok@example.com")
    assert v.validate_details(form) == v.MSG_MOBILE_INVALID


def test_zero_coordinates_count_as_a_location():
    assert v.validate_details(_details(latitude=0.0, longitude=0.0)) is None


def test_empty_email_is_optional():
    assert v.validate_details(_details(merchant_email="")) is None


def test_valid_payment_pass():
    assert v.validate_payment(_payment()) is None


@pytest.mark.parametrize("upi", ["cafe", "cafe@", "@upi", "ca fe@upi", "cafe@@upi", "café@upi", "a@b@c"])
def test_bad_upi_fails(upi):
    assert v.validate_payment(_payment(upi_id=upi)) == v.MSG_UPI_INVALID


@pytest.mark.parametrize("upi", ["cafe@upi", "first.last-1@ok_bank", "9876543210@ybl"])
def test_good_upi_passes(upi):
    assert v.validate_payment(_payment(upi_id=upi)) is None


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"upi_id": ""}, v.MSG_UPI_REQUIRED),
        ({"company": " "}, v.MSG_COMPANY_REQUIRED),
        ({"campaign_id": ""}, v.MSG_CAMPAIGN_MISSING),
    ],
)
def test_payment_failures(overrides, message):
    assert v.validate_payment(_payment(**overrides)) == message
