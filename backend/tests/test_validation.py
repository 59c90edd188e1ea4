import pytest

from coffee_finance.validation import (
    InsufficientFundsError,
    MAX_AMOUNT_UGX,
    ValidationError,
    coerce_amount,
    require_int_id,
)


@pytest.mark.parametrize("raw,expected", [
    (150000, 150000),
    (150000.0, 150000),
    ("150000", 150000),
    ("150,000", 150000),
    (" 42 ", 42),
])
def test_coerce_amount_accepts_whole_ugx(raw, expected):
    assert coerce_amount(raw, "amount_ugx") == expected


@pytest.mark.parametrize("raw", [None, True, "", "1e6", "10.5", 10.5, -1, 0, "abc", [100]])
def test_coerce_amount_rejects(raw):
    with pytest.raises(ValidationError):
        coerce_amount(raw, "amount_ugx")


def test_coerce_amount_zero_when_allowed():
    assert coerce_amount(0, "advance_recovery_ugx", allow_zero=True) == 0


def test_coerce_amount_upper_bound():
    with pytest.raises(ValidationError, match="cannot exceed"):
        coerce_amount(MAX_AMOUNT_UGX + 1, "amount_ugx")


def test_require_int_id_normalizes_strings():
    assert require_int_id("7", "user_id") == 7
    assert require_int_id(7, "user_id") == 7
    with pytest.raises(ValidationError):
        require_int_id("seven", "user_id")
    with pytest.raises(ValidationError):
        require_int_id(None, "user_id")


def test_insufficient_funds_message_names_both_amounts():
    err = InsufficientFundsError(100000, 250000)
    assert "UGX 100,000" in str(err)
    assert "UGX 250,000" in str(err)
    assert err.available_ugx == 100000
