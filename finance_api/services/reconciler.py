"""
Normalization helpers shared by the AI-backed services.

Model output is loosely typed: enum-like fields arrive in Portuguese or
English, with or without accents; numbers arrive as strings with comma
decimals. These helpers map that into the values the models store.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional

MEAL_DAYS = ("seg", "ter", "qua", "qui", "sex", "sab", "dom")
MEAL_TYPES = ("cafe", "almoco", "janta", "lanche")
TIP_TYPES = ("economia", "planejamento", "alerta")

_DAY_SYNONYMS = {
    "seg": ("seg", "segunda", "segunda-feira", "monday"),
    "ter": ("ter", "terca", "terça", "terca-feira", "terça-feira", "tuesday"),
    "qua": ("qua", "quarta", "quarta-feira", "wednesday"),
    "qui": ("qui", "quinta", "quinta-feira", "thursday"),
    "sex": ("sex", "sexta", "sexta-feira", "friday"),
    "sab": ("sab", "sáb", "sabado", "sábado", "saturday"),
    "dom": ("dom", "domingo", "sunday"),
}

_MEAL_TYPE_SYNONYMS = {
    "cafe": ("cafe", "café", "cafe da manha", "café da manhã", "breakfast"),
    "almoco": ("almoco", "almoço", "lunch"),
    "janta": ("janta", "jantar", "dinner"),
    "lanche": ("lanche", "snack"),
}

_TIP_TYPE_SYNONYMS = {
    "alerta": ("alerta", "alert", "warning"),
    "economia": ("economia", "saving", "savings"),
    "planejamento": ("planejamento", "planning", "plan"),
}


def _reverse(synonyms: dict) -> dict:
    return {alias: code for code, aliases in synonyms.items() for alias in aliases}


DAY_LOOKUP = _reverse(_DAY_SYNONYMS)
MEAL_TYPE_LOOKUP = _reverse(_MEAL_TYPE_SYNONYMS)
TIP_TYPE_LOOKUP = _reverse(_TIP_TYPE_SYNONYMS)


def _key(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value).strip().lower())


def normalize_meal_day(value: Any) -> Optional[str]:
    """Map a free-text weekday to seg..dom, or None when unrecognized."""
    return DAY_LOOKUP.get(_key(value))


def normalize_meal_type(value: Any) -> Optional[str]:
    """Map a free-text meal type to cafe/almoco/janta/lanche, or None."""
    return MEAL_TYPE_LOOKUP.get(_key(value))


def normalize_tip_type(value: Any) -> Optional[str]:
    """
    Map a free-text tip category to economia/planejamento/alerta.

    A missing type means a planning tip; any other unknown value returns None
    so the caller drops that tip.
    """
    key = _key(value)
    if not key:
        return "planejamento"
    return TIP_TYPE_LOOKUP.get(key)


def to_float(value: Any) -> Optional[float]:
    """
    Coerce a loosely typed number. Accepts "12,50", "R$ 12.50", ints and floats.

    Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = re.sub(r"[^\d,.\-]", "", value)
        if "," in text and "." in text:
            # 1.234,56 -> 1234.56
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    if number is None:
        return None
    return int(round(number))


def round_money(value: Any) -> float:
    """Round half-up to 2 decimals; non-numbers become 0.0."""
    number = to_float(value)
    if number is None:
        return 0.0
    try:
        return float(Decimal(str(number)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return 0.0


def clamp_relevance(value: Any) -> int:
    number = to_int(value)
    if number is None:
        return 0
    return max(0, min(100, number))


def clamp_confidence(value: Any) -> float:
    number = to_float(value)
    if number is None:
        return 0.0
    return max(0.0, min(1.0, number))


def clean_text(value: Any, max_length: Optional[int] = None) -> str:
    """Trimmed text; cut to ``max_length`` characters when given."""
    if value is None:
        return ""
    text = str(value).strip()
    if max_length is not None and len(text) > max_length:
        text = text[:max_length].rstrip()
    return text


def clean_string_list(values: Optional[Iterable[Any]]) -> List[str]:
    """Trim entries and drop blanks; a non-list becomes []."""
    if not isinstance(values, (list, tuple)):
        return []
    return [text for text in (clean_text(value) for value in values) if text]
