from __future__ import annotations

import ast
import logging
import re
from typing import Any, Mapping, NamedTuple, Optional

logger = logging.getLogger(__name__)

_NONNEG_INT_RE = re.compile(r"^[0-9]+$")
# Only digits, whitespace and integer operators may reach the evaluator.
_CALC_ALLOWED_RE = re.compile(r"^[0-9\s+\-*/%()]+$")
_DELAY_RE = re.compile(r"^[0-9]*\.?[0-9]+$")
MAX_EXPR_LENGTH = 256


class CalcResult(NamedTuple):
    value: int
    ok: bool


_FAILED = CalcResult(0, False)


def is_nonneg_int(v: Any) -> bool:
    """True iff ``v`` renders as a plain run of decimal digits."""
    if isinstance(v, bool) or v is None:
        return False
    return bool(_NONNEG_INT_RE.match(str(v)))


def coerce_int(v: Any, default: int) -> int:
    if is_nonneg_int(v):
        return int(str(v))
    return default


def clamp(v: Any, lo: int, hi: int) -> int:
    """Clamp ``v`` into [lo, hi]; anything non-numeric becomes ``lo``."""
    if not is_nonneg_int(v):
        return lo
    n = int(str(v))
    if n < lo:
        return lo
    if n > hi:
        return hi
    return n


def _eval_node(node: ast.AST) -> int:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) is int:
        return node.value
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.UAdd, ast.USub)):
        operand = _eval_node(node.operand)
        return -operand if isinstance(node.op, ast.USub) else operand
    if isinstance(node, ast.BinOp):
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if isinstance(node.op, (ast.Div, ast.FloorDiv)):
            return left // right
        if isinstance(node.op, ast.Mod):
            return left % right
    raise ValueError(f"unsupported expression element: {type(node).__name__}")


def safe_calc(expr: Any) -> CalcResult:
    """Evaluate an integer arithmetic expression.

    The input is filtered before parsing: empty strings, letters and shell
    metacharacters (``; & | ` $`` and friends) are rejected outright. What
    survives is parsed with :mod:`ast` and evaluated against a whitelist of
    integer operators; ``/`` is integer division. Never raises.
    """

    if not isinstance(expr, str):
        expr = str(expr) if is_nonneg_int(expr) else ""
    if (
        not expr.strip()
        or len(expr) > MAX_EXPR_LENGTH
        or not _CALC_ALLOWED_RE.match(expr)
        or "**" in expr
    ):
        logger.debug("safe_calc rejected expression %r", expr)
        return _FAILED
    try:
        tree = ast.parse(expr.strip(), mode="eval")
        return CalcResult(_eval_node(tree), True)
    except (SyntaxError, ValueError, ZeroDivisionError, RecursionError):
        logger.debug("safe_calc could not evaluate %r", expr)
        return _FAILED


def add_int(a: Any, b: Any) -> CalcResult:
    if not (is_nonneg_int(a) and is_nonneg_int(b)):
        return _FAILED
    return safe_calc(f"{int(str(a))} + {int(str(b))}")


def sub_int(a: Any, b: Any) -> CalcResult:
    """Saturating subtraction: ``b > a`` yields ``(0, False)``, never a negative."""
    if not (is_nonneg_int(a) and is_nonneg_int(b)):
        return _FAILED
    res = safe_calc(f"{int(str(a))} - {int(str(b))}")
    if not res.ok or res.value < 0:
        return _FAILED
    return res


def percent_of(value: Any, percent: Any) -> CalcResult:
    if not (is_nonneg_int(value) and is_nonneg_int(percent)):
        return _FAILED
    return safe_calc(f"{int(str(value))} * {int(str(percent))} / 100")


def midpoint(a: Any, b: Any) -> CalcResult:
    if not (is_nonneg_int(a) and is_nonneg_int(b)):
        return _FAILED
    return safe_calc(f"({int(str(a))} + {int(str(b))}) / 2")


def safe_progress_div(num: Any, den: Any) -> int:
    """Percentage of ``num`` over ``den`` in [0, 100]."""
    n = coerce_int(num, 0)
    d = coerce_int(den, 1)
    if d < 1:
        d = 1
    if n <= 0:
        return 0
    return min(100, n * 100 // d)


def env_int(
    environ: Mapping[str, str],
    name: str,
    default: int,
    lo: int,
    hi: int,
    *,
    fallback_high: Optional[int] = None,
) -> int:
    """Read an integer knob from the environment, failing closed.

    Unset, non-numeric or below-range values give ``default``. Values above
    ``hi`` give ``fallback_high`` when set, otherwise ``hi``.
    """

    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    raw = raw.strip()
    if not is_nonneg_int(raw):
        logger.debug("%s=%r is not a non-negative integer; using %s", name, raw, default)
        return default
    n = int(raw)
    if n < lo:
        logger.debug("%s=%s below %s; using %s", name, n, lo, default)
        return default
    if n > hi:
        capped = hi if fallback_high is None else fallback_high
        logger.debug("%s=%s above %s; using %s", name, n, hi, capped)
        return capped
    return n


def env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_delay(raw: Any, default: float = 0.02) -> float:
    """Polling delay: decimals in [0.01, 0.99] are kept, integers >= 1 mean 1.0."""

    if raw is None:
        return default
    txt = str(raw).strip()
    if not _DELAY_RE.match(txt):
        return default
    if "." not in txt:
        return 1.0 if int(txt) >= 1 else default
    int_part, _, dec_part = txt.partition(".")
    if int(int_part or "0") != 0 or len(dec_part) > 2:
        return default
    value = float(txt)
    if 0.01 <= value <= 0.99:
        return value
    return default


def env_delay(environ: Mapping[str, str], name: str, default: float = 0.02) -> float:
    return parse_delay(environ.get(name), default)
