from __future__ import annotations

import pytest

from caddroid_installer.lib.safe_math import (
    CalcResult,
    add_int,
    clamp,
    coerce_int,
    env_delay,
    env_flag,
    env_int,
    is_nonneg_int,
    midpoint,
    parse_delay,
    percent_of,
    safe_calc,
    safe_progress_div,
    sub_int,
)


@pytest.mark.parametrize("v", [0, 7, "42", "0003"])
def test_is_nonneg_int_accepts_digit_runs(v):
    assert is_nonneg_int(v)


@pytest.mark.parametrize("v", ["", "-1", "1.5", "abc", " 3", None, True, "3;rm"])
def test_is_nonneg_int_rejects_everything_else(v):
    assert not is_nonneg_int(v)


def test_clamp():
    assert clamp("abc", 1, 10) == 1
    assert clamp(0, 1, 10) == 1
    assert clamp(5, 1, 10) == 5
    assert clamp(99, 1, 10) == 10
    assert clamp("-4", 1, 10) == 1


def test_coerce_int_falls_back_to_default():
    assert coerce_int("12", 0) == 12
    assert coerce_int("x", 30) == 30


def test_add_and_sub():
    assert add_int(2, 3) == CalcResult(5, True)
    assert add_int("007", 1) == CalcResult(8, True)
    assert add_int("a", 1) == CalcResult(0, False)
    assert sub_int(10, 4) == CalcResult(6, True)


def test_sub_saturates_instead_of_going_negative():
    res = sub_int(3, 5)
    assert res.value == 0
    assert res.ok is False


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("7 / 2", 3),
        ("7 % 4", 3),
        ("10 - 25", -15),
    ],
)
def test_safe_calc_evaluates_integer_arithmetic(expr, expected):
    assert safe_calc(expr) == CalcResult(expected, True)


@pytest.mark.parametrize(
    "expr",
    [
        "",
        "   ",
        "a + 1",
        "1; rm -rf /",
        "$(id)",
        "`id`",
        "2 ** 64",
        "1 / 0",
        "5 % 0",
        "(1 + 2",
        "1" * 300,
    ],
)
def test_safe_calc_rejects(expr):
    assert safe_calc(expr) == CalcResult(0, False)


def test_percent_midpoint_progress():
    assert percent_of(200, 15) == CalcResult(30, True)
    assert midpoint(4, 9) == CalcResult(6, True)
    assert midpoint("x", 9).ok is False
    assert safe_progress_div(6, 300) == 2
    assert safe_progress_div(500, 300) == 100
    assert safe_progress_div(5, 0) == 100
    assert safe_progress_div("junk", 10) == 0


def test_env_int_fails_closed():
    env = {"A": "12", "B": "abc", "C": "0", "D": "999", "E": ""}
    assert env_int(env, "A", 5, 1, 60) == 12
    assert env_int(env, "B", 5, 1, 60) == 5
    assert env_int(env, "C", 5, 1, 60) == 5
    assert env_int(env, "D", 40, 10, 300) == 300
    assert env_int(env, "D", 5, 1, 60, fallback_high=5) == 5
    assert env_int(env, "E", 5, 1, 60) == 5
    assert env_int(env, "MISSING", 5, 1, 60) == 5


def test_env_flag():
    env = {"ON": "1", "YES": "yes", "OFF": "0", "BLANK": " "}
    assert env_flag(env, "ON", False)
    assert env_flag(env, "YES", False)
    assert not env_flag(env, "OFF", True)
    assert env_flag(env, "BLANK", True)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0.05", 0.05),
        (".5", 0.5),
        ("0.99", 0.99),
        ("3", 1.0),
        ("0", 0.02),
        ("0.001", 0.02),
        ("1.5", 0.02),
        ("fast", 0.02),
        (None, 0.02),
    ],
)
def test_parse_delay(raw, expected):
    assert parse_delay(raw) == pytest.approx(expected)


def test_env_delay_reads_mapping():
    assert env_delay({"SPINNER_DELAY": "0.1"}, "SPINNER_DELAY") == pytest.approx(0.1)
