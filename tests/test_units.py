import pytest

from nearctl.units import (
    DEFAULT_FUNCTION_CALL_GAS,
    YOCTO_PER_NEAR,
    MAX_YOCTONEAR,
    AmountFormatError,
    NearBalance,
    NearGas,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("10NEAR", 10 * YOCTO_PER_NEAR),
        ("0.5 near", YOCTO_PER_NEAR // 2),
        ("10000yoctonear", 10000),
        (" 3 Near ", 3 * YOCTO_PER_NEAR),
        (".25NEAR", YOCTO_PER_NEAR // 4),
    ],
)
def test_near_balance_parses_supported_forms(raw, expected):
    assert NearBalance.parse(raw).yoctonear == expected


def test_near_balance_keeps_all_24_decimals_exact():
    balance = NearBalance.parse("123456789.123456789123456789123456NEAR")

    assert balance.yoctonear == 123456789 * YOCTO_PER_NEAR + 123456789123456789123456


@pytest.mark.parametrize(
    "raw",
    ["10", "abc NEAR", "-1NEAR", "1.5yoctonear", "0.0000000000000000000000001NEAR", ""],
)
def test_near_balance_rejects_malformed_amounts(raw):
    with pytest.raises(AmountFormatError):
        NearBalance.parse(raw)


@pytest.mark.parametrize(
    "raw", [f"{10**21}NEAR", f"{2**128}yoctonear", "340282366920938.463463374607431768211456NEAR"]
)
def test_near_balance_rejects_amounts_beyond_u128(raw):
    with pytest.raises(AmountFormatError, match="largest representable"):
        NearBalance.parse(raw)


def test_near_balance_accepts_the_largest_u128_amount():
    assert NearBalance.parse(f"{MAX_YOCTONEAR}yoctonear").yoctonear == 2**128 - 1


def test_near_balance_renders_in_near():
    assert str(NearBalance.parse("0.5 near")) == "0.5 NEAR"
    assert str(NearBalance(0)) == "0 NEAR"
    assert str(NearBalance.from_near(10)) == "10 NEAR"
    assert str(NearBalance(1)) == "0.000000000000000000000001 NEAR"


def test_near_balance_text_parses_back_to_same_value():
    for balance in (NearBalance(0), NearBalance(1), NearBalance.parse("1234.5678NEAR")):
        assert NearBalance.parse(str(balance)) == balance


def test_near_balance_is_ordered():
    assert NearBalance.parse("5NEAR") < NearBalance.parse("10NEAR")
    assert NearBalance.parse("10NEAR") <= NearBalance.from_near(10)


def test_near_gas_parses_and_renders():
    assert NearGas.parse("100 TeraGas").gas == DEFAULT_FUNCTION_CALL_GAS
    assert NearGas.parse("30 Tgas").gas == 30 * 10**12
    assert NearGas.parse("1000000 gas").gas == 1_000_000
    assert str(NearGas(DEFAULT_FUNCTION_CALL_GAS)) == "100 Tgas"
    assert str(NearGas.parse("2.5 Tgas")) == "2.5 Tgas"


@pytest.mark.parametrize("raw", ["100", "1.5 gas", "ten Tgas"])
def test_near_gas_rejects_malformed_amounts(raw):
    with pytest.raises(AmountFormatError):
        NearGas.parse(raw)
