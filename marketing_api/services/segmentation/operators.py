"""
Condition operators.

Each ConditionOperator has exactly one handler, registered with
``@operator(...)``. A handler receives the contact's field value (possibly
``MISSING``), the condition's ``value`` and ``value2``, and the evaluation
time, and returns a bool. Handlers never raise: values that cannot be
coerced compare as NaN or as an invalid date, and every comparison
involving those is false.

Coercion follows the console front end, which stores rules written against
loosely typed records: equality compares string forms (``5`` equals
``"5"``), numeric operators go through ``to_number`` and date operators
through ``parse_date``.
"""

import math
import re
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from marketing_api.schemas.segment import ConditionOperator as Op
from marketing_api.utils.field_path import MISSING

Handler = Callable[[Any, Any, Any, datetime], bool]

OPERATOR_HANDLERS: Dict[Op, Handler] = {}

_DATE_MIN = datetime.min.replace(tzinfo=timezone.utc)
_DATE_MAX = datetime.max.replace(tzinfo=timezone.utc)

_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)$")
_RADIX_RE = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_RADIX = {"x": 16, "o": 8, "b": 2}
_ISO_RE = re.compile(
    r"^(?P<year>[+-]\d{6}|\d{4})"
    r"(?:-(?P<month>\d{2})(?:-(?P<day>\d{2}))?)?"
    r"(?:[Tt ](?P<hour>\d{2}):(?P<minute>\d{2})"
    r"(?::(?P<second>\d{2})(?:[.,](?P<fraction>\d{1,9}))?)?)?"
    r"(?P<tz>[Zz]|[+-]\d{2}:?\d{2})?$"
)


def operator(*ops: Op) -> Callable[[Handler], Handler]:
    """Register a handler for one or more operators."""

    def decorator(func: Handler) -> Handler:
        for op in ops:
            if op in OPERATOR_HANDLERS:
                raise RuntimeError(f"Operator {op.value} registered twice")
            OPERATOR_HANDLERS[op] = func
        return func

    return decorator


# =============================================================================
# COERCION
# =============================================================================


def to_js_string(value: Any) -> str:
    """String form of a record value, as the console renders it."""
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join(
            "" if item is None or item is MISSING else to_js_string(item) for item in value
        )
    if isinstance(value, Mapping):
        return "[object Object]"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _string_or_empty(value: Any) -> str:
    if value is MISSING or value is None:
        return ""
    return to_js_string(value)


def to_number(value: Any) -> float:
    """Numeric form of a value; NaN when it has none."""
    if value is MISSING:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return _parse_number(value)
    if isinstance(value, (list, tuple)):
        return _parse_number(to_js_string(value))
    return math.nan


def _parse_number(text: str) -> float:
    text = text.strip()
    if not text:
        return 0.0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    if _DECIMAL_RE.match(text):
        return float(text)
    radix = _RADIX_RE.match(text)
    if radix:
        try:
            return float(int(radix.group(2), _RADIX[radix.group(1).lower()]))
        except ValueError:
            return math.nan
    return math.nan


def parse_date(value: Any) -> Optional[datetime]:
    """Timezone-aware UTC datetime for a value, or None when it is not a date.

    Accepts datetime and date objects and ISO 8601 strings. Timestamps
    without an offset are read as UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value is MISSING or value is None or isinstance(value, bool):
        return None

    match = _ISO_RE.match(to_js_string(value).strip())
    if not match:
        return None
    parts = match.groupdict()
    if parts["hour"] is not None and parts["day"] is None:
        return None

    try:
        fraction = (parts["fraction"] or "0")[:6].ljust(6, "0")
        parsed = datetime(
            int(parts["year"]),
            int(parts["month"] or 1),
            int(parts["day"] or 1),
            int(parts["hour"] or 0),
            int(parts["minute"] or 0),
            int(parts["second"] or 0),
            int(fraction),
            tzinfo=_parse_offset(parts["tz"]),
        )
    except ValueError:
        return None
    return parsed.astimezone(timezone.utc)


def _parse_offset(tz: Optional[str]) -> timezone:
    if tz is None or tz in ("Z", "z"):
        return timezone.utc
    sign = -1 if tz[0] == "-" else 1
    digits = tz[1:].replace(":", "")
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))


def _days_before(now: datetime, days: float) -> Optional[datetime]:
    if math.isnan(days) or math.isinf(days):
        return None
    try:
        return now - timedelta(days=days)
    except OverflowError:
        return _DATE_MIN if days > 0 else _DATE_MAX


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _lower_equal(a: Any, b: Any) -> bool:
    return to_js_string(a).lower() == to_js_string(b).lower()


# =============================================================================
# STRING / GENERIC
# =============================================================================


@operator(Op.EQUALS)
def _equals(field_value, value, value2, now):
    return to_js_string(field_value) == to_js_string(value)


@operator(Op.NOT_EQUALS)
def _not_equals(field_value, value, value2, now):
    return to_js_string(field_value) != to_js_string(value)


@operator(Op.CONTAINS)
def _contains(field_value, value, value2, now):
    return to_js_string(value).lower() in _string_or_empty(field_value).lower()


@operator(Op.NOT_CONTAINS)
def _not_contains(field_value, value, value2, now):
    return not _contains(field_value, value, value2, now)


@operator(Op.STARTS_WITH)
def _starts_with(field_value, value, value2, now):
    return _string_or_empty(field_value).lower().startswith(to_js_string(value).lower())


@operator(Op.ENDS_WITH)
def _ends_with(field_value, value, value2, now):
    return _string_or_empty(field_value).lower().endswith(to_js_string(value).lower())


@operator(Op.EXISTS)
def _exists(field_value, value, value2, now):
    # 0 and False count as present
    return field_value is not MISSING and field_value is not None and field_value != ""


@operator(Op.NOT_EXISTS)
def _not_exists(field_value, value, value2, now):
    return not _exists(field_value, value, value2, now)


# =============================================================================
# NUMBER
# =============================================================================


@operator(Op.GREATER_THAN)
def _greater_than(field_value, value, value2, now):
    return to_number(field_value) > to_number(value)


@operator(Op.LESS_THAN)
def _less_than(field_value, value, value2, now):
    return to_number(field_value) < to_number(value)


@operator(Op.GREATER_OR_EQUAL)
def _greater_or_equal(field_value, value, value2, now):
    return to_number(field_value) >= to_number(value)


@operator(Op.LESS_OR_EQUAL)
def _less_or_equal(field_value, value, value2, now):
    return to_number(field_value) <= to_number(value)


@operator(Op.BETWEEN)
def _between(field_value, value, value2, now):
    number = to_number(field_value)
    upper = MISSING if value2 is None else value2
    return to_number(value) <= number <= to_number(upper)


# =============================================================================
# DATE
# =============================================================================


@operator(Op.BEFORE)
def _before(field_value, value, value2, now):
    left, right = parse_date(field_value), parse_date(value)
    return left is not None and right is not None and left < right


@operator(Op.AFTER)
def _after(field_value, value, value2, now):
    left, right = parse_date(field_value), parse_date(value)
    return left is not None and right is not None and left > right


@operator(Op.ON)
def _on(field_value, value, value2, now):
    left, right = parse_date(field_value), parse_date(value)
    return left is not None and right is not None and left.date() == right.date()


@operator(Op.IN_LAST_DAYS)
def _in_last_days(field_value, value, value2, now):
    moment = parse_date(field_value)
    cutoff = _days_before(now, to_number(value))
    return moment is not None and cutoff is not None and moment >= cutoff


@operator(Op.NOT_IN_LAST_DAYS)
def _not_in_last_days(field_value, value, value2, now):
    moment = parse_date(field_value)
    cutoff = _days_before(now, to_number(value))
    return moment is not None and cutoff is not None and moment < cutoff


# =============================================================================
# ARRAY
# =============================================================================


@operator(Op.ARRAY_CONTAINS)
def _array_contains(field_value, value, value2, now):
    return _is_array(field_value) and any(_lower_equal(item, value) for item in field_value)


@operator(Op.ARRAY_NOT_CONTAINS)
def _array_not_contains(field_value, value, value2, now):
    return not _array_contains(field_value, value, value2, now)


@operator(Op.ARRAY_CONTAINS_ALL)
def _array_contains_all(field_value, value, value2, now):
    if not _is_array(field_value) or not _is_array(value):
        return False
    return all(any(_lower_equal(item, wanted) for item in field_value) for wanted in value)


@operator(Op.ARRAY_IS_EMPTY)
def _array_is_empty(field_value, value, value2, now):
    return not _is_array(field_value) or len(field_value) == 0


@operator(Op.ARRAY_IS_NOT_EMPTY)
def _array_is_not_empty(field_value, value, value2, now):
    return _is_array(field_value) and len(field_value) > 0


# =============================================================================
# BOOLEAN
# =============================================================================


@operator(Op.IS_TRUE)
def _is_true(field_value, value, value2, now):
    return field_value is True or field_value == "true"


@operator(Op.IS_FALSE)
def _is_false(field_value, value, value2, now):
    # an absent flag reads as false; an explicit None does not
    return field_value is False or field_value == "false" or field_value is MISSING


# =============================================================================
# SELECT
# =============================================================================


@operator(Op.IN)
def _in(field_value, value, value2, now):
    return _is_array(value) and to_js_string(field_value) in value


@operator(Op.NOT_IN)
def _not_in(field_value, value, value2, now):
    return _is_array(value) and to_js_string(field_value) not in value
