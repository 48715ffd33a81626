from __future__ import annotations

import pandas as pd

from merchant_onboarding import utils


def test_norm_space_handles_nan_and_whitespace():
    assert utils.norm_space(None) == ""
    assert utils.norm_space(float("nan")) == ""
    assert utils.norm_space(pd.NA) == ""
    assert utils.norm_space("  a   b  ") == "a b"
    assert utils.norm_space(" a\nb\tc ") == "a b c"


def test_nonempty_uses_norm_space():
    assert utils.nonempty("  data  ")
    assert not utils.nonempty(" \t ")
    assert not utils.nonempty(None)


def test_norm_phone_strips_non_digits():
    assert utils.norm_phone("98765-43210") == "9876543210"
    assert utils.norm_phone(" (022) 123 4567 ") == "0221234567"
    assert utils.norm_phone("") == ""


def test_norm_float_extracts_first_number():
    assert utils.norm_float("abc 12.5 xyz") == 12.5
    assert utils.norm_float(" -7,3 ") == -7.3
    assert utils.norm_float("0") == 0.0
    assert utils.norm_float("no number") is None


def test_qr_filename_keeps_name_but_drops_separators():
    assert utils.qr_filename("Cafe X") == "Cafe X_qr.png"
    assert utils.qr_filename("A/B\\C") == "A_B_C_qr.png"
    assert utils.qr_filename("") == "merchant_qr.png"
