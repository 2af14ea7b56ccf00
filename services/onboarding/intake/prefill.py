"""Prefill new submissions from a client's previously saved records.

Each known section kind has a primary accessor and a list-based fallback.
Sections are filled independently: a lookup failure in one section leaves
that section empty and never affects the others.
"""
from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from django.utils.dateparse import parse_date, parse_datetime

from formconfigs.schema import (
    ASSETS,
    EMPLOYMENT,
    EXPENSES,
    FAMILY,
    INCOME,
    LIABILITIES,
    PERSONAL,
    FormSchema,
)

from .client import BackendClient
from .errors import IntakeError
from .session import SessionUser

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]
Accessor = Callable[[BackendClient, str], Any]


def format_date(value: Any) -> str:
    """Render a stored date or timestamp as ``YYYY-MM-DD``; unparsable values become ``""``."""

    if not value:
        return ""
    text = str(value)
    try:
        moment = parse_datetime(text)
    except ValueError:
        moment = None
    if moment is not None:
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date().isoformat()
    try:
        day = parse_date(text)
    except ValueError:
        day = None
    return day.isoformat() if day is not None else ""


def _first(result: Any) -> Optional[Record]:
    if isinstance(result, Mapping):
        # Some list endpoints wrap their items.
        for key in ("results", "items"):
            if isinstance(result.get(key), list):
                return _first(result[key])
        return result or None
    if isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
        for item in result:
            if isinstance(item, Mapping):
                return item
    return None


def _text(record: Record, key: str) -> str:
    return record.get(key) or ""


def _amount(record: Record, key: str, default: float = 0) -> Any:
    return record.get(key) or default


def map_personal(record: Record) -> Dict[str, Any]:
    return {
        "salutation": _text(record, "salutation"),
        "first_name": _text(record, "first_name"),
        "last_name": _text(record, "last_name"),
        "email": _text(record, "email"),
        "phone": _text(record, "phone"),
        "street": _text(record, "street"),
        "house_number": _text(record, "house_number"),
        "postal_code": _text(record, "postal_code"),
        "city": _text(record, "city"),
        "birth_date": format_date(record.get("birth_date")),
        "birth_place": _text(record, "birth_place"),
        "nationality": _text(record, "nationality"),
        "marital_status": _text(record, "marital_status"),
        "housing": _text(record, "housing"),
        "eu_citizen": bool(record.get("eu_citizen") or False),
    }


def map_family(record: Record) -> Dict[str, Any]:
    return {
        "first_name": _text(record, "first_name"),
        "last_name": _text(record, "last_name"),
        "relation": _text(record, "relation"),
        "birth_date": format_date(record.get("birth_date")),
        "nationality": _text(record, "nationality"),
    }


def map_employment(record: Record) -> Dict[str, Any]:
    return {
        "occupation": _text(record, "occupation"),
        "contract_type": _text(record, "contract_type"),
        "employer_name": _text(record, "employer_name"),
        "employed_since": format_date(record.get("employed_since")),
    }


def map_income(record: Record) -> Dict[str, Any]:
    return {
        "gross_income": _amount(record, "gross_income"),
        "net_income": _amount(record, "net_income"),
        "tax_class": _text(record, "tax_class"),
        "number_of_salaries": _amount(record, "number_of_salaries", 12),
        "child_benefit": _amount(record, "child_benefit"),
        "other_income": _amount(record, "other_income"),
    }


def map_expenses(record: Record) -> Dict[str, Any]:
    return {
        "cold_rent": _amount(record, "cold_rent"),
        "electricity": _amount(record, "electricity"),
        "living_expenses": _amount(record, "living_expenses"),
        "other_expenses": _amount(record, "other_expenses"),
    }


def map_assets(record: Record) -> Dict[str, Any]:
    return {
        "real_estate": _amount(record, "real_estate"),
        "securities": _amount(record, "securities"),
        "bank_deposits": _amount(record, "bank_deposits"),
        "other_assets": _amount(record, "other_assets"),
    }


def map_liabilities(record: Record) -> Dict[str, Any]:
    return {
        "loan_type": _text(record, "loan_type"),
        "loan_bank": _text(record, "loan_bank"),
        "loan_amount": _amount(record, "loan_amount"),
        "loan_monthly_rate": _amount(record, "loan_monthly_rate"),
    }


def _by_path(template: str) -> Accessor:
    return lambda client, user_id: client.get(template.format(user_id=user_id))


def _by_query(path: str) -> Accessor:
    return lambda client, user_id: client.get(path, {"userId": user_id})


PREFILL_SOURCES: Dict[str, Tuple[Accessor, Accessor, Callable[[Record], Dict[str, Any]]]] = {
    PERSONAL: (
        _by_path("personal-details/{user_id}"),
        _by_path("personal-details/user/{user_id}"),
        map_personal,
    ),
    FAMILY: (
        _by_path("family-members/user/{user_id}"),
        _by_path("family-members/{user_id}"),
        map_family,
    ),
    EMPLOYMENT: (_by_path("employment/{user_id}"), _by_query("employment"), map_employment),
    INCOME: (_by_path("income/{user_id}"), _by_query("income"), map_income),
    EXPENSES: (_by_path("expenses/{user_id}"), _by_query("expenses"), map_expenses),
    ASSETS: (_by_path("assets/{user_id}"), _by_query("assets"), map_assets),
    LIABILITIES: (_by_path("liabilities/{user_id}"), _by_query("liabilities"), map_liabilities),
}


def prefill_section(client: BackendClient, kind: str, user_id: str) -> Optional[Dict[str, Any]]:
    """Try the primary accessor, then the fallback; ``None`` when neither yields a record."""

    primary, fallback, mapper = PREFILL_SOURCES[kind]
    for label, accessor in (("primary", primary), ("fallback", fallback)):
        try:
            record = _first(accessor(client, user_id))
        except IntakeError as exc:
            logger.info("No %s data for user %s via %s lookup: %s", kind, user_id, label, exc)
            continue
        if record:
            return mapper(record)
    return None


def prefill_form_data(client: BackendClient, schema: FormSchema, user: Optional[SessionUser]) -> Dict[str, Any]:
    """Build the initial ``form_data`` for a new submission.

    Only clients get prefilled data, and only sections that produced a
    record appear in the result. A failing section is logged and left
    empty; it never aborts the others.
    """

    if user is None or not user.is_client:
        return {}

    prefilled: Dict[str, Any] = {}
    for section in schema.ordered_sections():
        kind = section.prefill_source
        if kind not in PREFILL_SOURCES:
            continue
        try:
            data = prefill_section(client, kind, user.id)
        except Exception:
            logger.exception("Prefill of section %s failed", section.id)
            continue
        if data:
            prefilled[section.id] = data
    logger.info("Prefilled %d section(s) for user %s", len(prefilled), user.id)
    return prefilled
