"""Fixed field layouts for well-known section kinds.

A section whose ``prefill_source`` names one of these kinds is rendered and
validated with the layout below instead of its own ``fields``.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .schema import (
    ASSETS,
    CHECKBOX,
    DATE,
    EMAIL,
    EMPLOYMENT,
    EXPENSES,
    FAMILY,
    INCOME,
    LIABILITIES,
    NUMBER,
    PERSONAL,
    SELECT,
    TEL,
    TEXT,
    FieldValidation,
    FormField,
    Section,
)


def _field(
    name: str,
    label: str,
    field_type: str = TEXT,
    required: bool = False,
    placeholder: str = "",
    options: Sequence[str] = (),
    min: Optional[float] = None,
    max: Optional[float] = None,
) -> FormField:
    validation = None
    if min is not None or max is not None:
        validation = FieldValidation(min=min, max=max)
    return FormField(
        id=name,
        name=name,
        type=field_type,
        label=label,
        required=required,
        placeholder=placeholder,
        options=list(options),
        validation=validation,
    )


def _amount(name: str, label: str, required: bool = False, placeholder: str = "") -> FormField:
    return _field(name, label, NUMBER, required=required, placeholder=placeholder, min=0)


KNOWN_LAYOUTS: Dict[str, List[FormField]] = {
    PERSONAL: [
        _field("salutation", "Salutation", placeholder="Mr./Ms./Dr."),
        _field("first_name", "First Name", required=True),
        _field("last_name", "Last Name", required=True),
        _field("email", "Email", EMAIL, required=True),
        _field("phone", "Phone", TEL, required=True),
        _field("street", "Street", required=True),
        _field("house_number", "House Number", required=True),
        _field("postal_code", "Postal Code", required=True),
        _field("city", "City", required=True),
        _field("birth_date", "Birth Date", DATE, required=True),
        _field("birth_place", "Birth Place", required=True),
        _field("nationality", "Nationality", required=True),
        _field(
            "marital_status",
            "Marital Status",
            SELECT,
            required=True,
            options=("single", "married", "divorced", "widowed"),
        ),
        _field(
            "housing",
            "Housing",
            SELECT,
            required=True,
            options=("owned", "rented", "livingWithParents", "other"),
        ),
        _field("eu_citizen", "EU Citizen", CHECKBOX),
    ],
    FAMILY: [
        _field("first_name", "First Name", required=True),
        _field("last_name", "Last Name", required=True),
        _field(
            "relation",
            "Relation",
            SELECT,
            required=True,
            options=("Spouse", "Child", "Parent", "Other"),
        ),
        _field("birth_date", "Birth Date", DATE, required=True),
        _field("nationality", "Nationality", required=True),
    ],
    EMPLOYMENT: [
        _field("occupation", "Occupation", required=True),
        _field("contract_type", "Contract Type"),
        _field("employer_name", "Employer Name"),
        _field("employed_since", "Employed Since", DATE),
    ],
    INCOME: [
        _field("gross_income", "Gross Income", NUMBER, required=True, placeholder="Monthly gross income"),
        _field("net_income", "Net Income", NUMBER, required=True, placeholder="Monthly net income"),
        _field("tax_class", "Tax Class"),
        _field("number_of_salaries", "Number of Salaries", NUMBER, min=12, max=14),
        _amount("child_benefit", "Child Benefit"),
        _amount("other_income", "Other Income"),
    ],
    EXPENSES: [
        _amount("cold_rent", "Cold Rent"),
        _amount("electricity", "Electricity"),
        _amount("living_expenses", "Living Expenses"),
        _amount("other_expenses", "Other Expenses"),
    ],
    ASSETS: [
        _amount("real_estate", "Real Estate"),
        _amount("securities", "Securities"),
        _amount("bank_deposits", "Bank Deposits"),
        _amount("other_assets", "Other Assets"),
    ],
    LIABILITIES: [
        _field(
            "loan_type",
            "Loan Type",
            SELECT,
            required=True,
            options=(
                "PersonalLoan",
                "HomeLoan",
                "CarLoan",
                "BusinessLoan",
                "EducationLoan",
                "OtherLoan",
            ),
        ),
        _field("loan_bank", "Loan Bank"),
        _amount("loan_amount", "Loan Amount"),
        _amount("loan_monthly_rate", "Monthly Rate"),
    ],
}


def layout_for(section: Section) -> Optional[List[FormField]]:
    if section.prefill_source is None:
        return None
    return KNOWN_LAYOUTS.get(section.prefill_source)


def effective_fields(section: Section) -> List[FormField]:
    """Known-kind layouts take precedence over the section's own fields."""

    layout = layout_for(section)
    if layout is not None:
        return layout
    return list(section.fields)
