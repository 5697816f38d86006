"""
Binding formatting and per-row rules.

Every function here is total: missing fields, ``None`` and unparseable
values degrade to an empty string or the raw text, never an exception.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .document import CanvasElement, ConditionalRule, DataBinding


NUMERIC_JUNK = re.compile(r"[^0-9.\-]")
LEADING_NUMBER = re.compile(r"^-?(?:\d+(?:\.\d*)?|\.\d+)")
DATE_PATTERNS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%d %B %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%Y",
)
DATE_TOKENS = ("YYYY", "YY", "MM", "DD", "HH", "mm", "ss")


def value_to_text(value: Any) -> str:
    """Stringify a cell value the way a spreadsheet preview shows it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_number(text: str) -> Optional[float]:
    """Leading-number parse of ``text`` with non-numeric characters stripped."""
    match = LEADING_NUMBER.match(NUMERIC_JUNK.sub("", text))
    if not match:
        return None
    return float(match.group(0))


def parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass
    for pattern in DATE_PATTERNS:
        try:
            return datetime.strptime(text, pattern)
        except ValueError:
            continue
    return None


def format_date(date: datetime, fmt: str) -> str:
    values = {
        "YYYY": f"{date.year:04d}",
        "YY": f"{date.year:04d}"[-2:],
        "MM": f"{date.month:02d}",
        "DD": f"{date.day:02d}",
        "HH": f"{date.hour:02d}",
        "mm": f"{date.minute:02d}",
        "ss": f"{date.second:02d}",
    }
    out = fmt
    for token in DATE_TOKENS:
        out = out.replace(token, values[token], 1)
    return out


def _fixed(number: float, decimals: int, grouped: bool) -> str:
    decimals = max(0, int(decimals))
    if grouped:
        return f"{number:,.{decimals}f}"
    return f"{number:.{decimals}f}"


def format_data_value(value: Any, binding: DataBinding) -> str:
    if value is None:
        return ""

    text = value_to_text(value)
    prefix = binding.prefix or ""
    suffix = binding.suffix or ""
    decimals = 2 if binding.decimal_places is None else binding.decimal_places
    fmt = binding.format or "none"

    if fmt == "currency":
        number = parse_number(text)
        if number is None:
            return text
        symbol = "$" if binding.currency_symbol is None else binding.currency_symbol
        return f"{prefix}{symbol}{_fixed(number, decimals, binding.thousand_separator)}{suffix}"

    if fmt == "number":
        number = parse_number(text)
        if number is None:
            return text
        return f"{prefix}{_fixed(number, decimals, binding.thousand_separator)}{suffix}"

    if fmt == "percentage":
        # Already a percentage number; no second multiplication.
        number = parse_number(text)
        if number is None:
            return text
        return f"{prefix}{_fixed(number, decimals, False)}%{suffix}"

    if fmt == "date":
        date = parse_date(value)
        if date is None:
            return text
        if binding.date_format:
            return f"{prefix}{format_date(date, binding.date_format)}{suffix}"
        return f"{prefix}{date.month}/{date.day}/{date.year}{suffix}"

    return f"{prefix}{text}{suffix}"


def format_multiple_bindings(row: Dict[str, Any], bindings: Iterable[DataBinding], separator: str = " ") -> str:
    parts: List[str] = []
    for binding in bindings:
        formatted = format_data_value(row.get(binding.field), binding)
        if formatted != "":
            parts.append(formatted)
    return separator.join(parts)


def _is_empty(value: Any) -> bool:
    return value is None or value_to_text(value).strip() == ""


def evaluate_rule(rule: ConditionalRule, row: Dict[str, Any]) -> bool:
    value = row.get(rule.field)
    operator = rule.operator
    if operator == "empty":
        return _is_empty(value)
    if operator == "not_empty":
        return not _is_empty(value)

    left = "" if value is None else value_to_text(value)
    right = "" if rule.value is None else value_to_text(rule.value)
    if operator == "equals":
        return left == right
    if operator == "not_equals":
        return left != right
    if operator == "contains":
        return right.lower() in left.lower()
    if operator in ("greater_than", "less_than"):
        a = parse_number(left) if left else None
        b = parse_number(right) if right else None
        if a is not None and b is not None:
            return a > b if operator == "greater_than" else a < b
        return left > right if operator == "greater_than" else left < right
    return False


@dataclass(frozen=True)
class RowEffects:
    hidden: bool = False
    color: Optional[str] = None
    background: Optional[str] = None


def apply_conditional_rules(element: CanvasElement, row: Dict[str, Any]) -> RowEffects:
    hidden = False
    color = None
    background = None
    show_rules = [rule for rule in element.conditional_rules if rule.action == "show"]
    if show_rules and not any(evaluate_rule(rule, row) for rule in show_rules):
        hidden = True
    for rule in element.conditional_rules:
        if rule.action == "show" or not evaluate_rule(rule, row):
            continue
        if rule.action == "hide":
            hidden = True
        elif rule.action == "color" and rule.action_value:
            color = rule.action_value
        elif rule.action == "background" and rule.action_value:
            background = rule.action_value
    return RowEffects(hidden=hidden, color=color, background=background)
