"""Form state: the single aggregate of all answers, plus its store.

Field names are snake_case in Python; the wire payload keeps the camelCase
keys the intake endpoint expects (``companyName``, ``GTIN8sRequired`` ...).
"""

from __future__ import annotations

import logging
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

FORM_NAME = "General Form"

# Placeholder for "address intentionally omitted", never a real address
ADDRESS_SENTINEL = "-"
MAX_ADDRESSES = 20

TITLES = ("Mr.", "Mrs.", "Ms.", "Dr.")
CEO_DESIGNATIONS = ("CEO", "Managing Director", "Proprietor")
PROVINCES = ("Sindh", "Punjab", "Khyber Pakhtunkhwa", "Balochistan")

CONTACT_KEYS = ("ceo", "key_contact", "accounts_contact")

CATEGORIES = (
    "Agricultural",
    "Bakery Products",
    "Beverages",
    "Building Materials",
    "Chemicals",
    "Cigarettes",
    "Cleaning Products",
    "Computer Software",
    "Detergents",
    "Eggs",
    "Electric Heaters",
    "Equipment's",
    "Food",
    "Fruit Juices",
    "Confectionery",
    "Sea Foods",
    "Snack Foods",
    "Dairy Products",
    "Industrial Goods",
    "Mineral water",
    "Paper & Stationery",
    "Perfume & Cosmetics",
    "Soaps",
    "Sports Goods",
    "Tea",
    "Tissue Papers",
    "Toiletries",
    "Rice",
    "Toys",
    "Fruits and Vegetables Export",
)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContactInfo(_WireModel):
    designation: str = ""
    title: str = "Mr."
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    telephone: str = ""


class FormState(_WireModel):
    form_name: str = FORM_NAME

    # Company
    company_name: str = ""
    street_address: str = ""
    city: str = ""
    province: str = ""
    post_code: str = ""
    telephone: str = ""
    email: str = ""
    ntn: str = ""
    company_reg_no: str = ""
    no_of_employees: str = ""
    website: str = ""

    # GLN / billing
    gln_required: bool = False
    gln_addresses: List[str] = Field(default_factory=list)
    billing_required: Literal["Yes", "No"] = "No"
    billing_addresses: List[str] = Field(default_factory=list)

    # Contacts
    ceo: ContactInfo = Field(default_factory=lambda: ContactInfo(designation="CEO"))
    key_contact: ContactInfo = Field(default_factory=ContactInfo)
    accounts_contact: ContactInfo = Field(default_factory=ContactInfo)

    # Products / fees
    selected_categories: List[str] = Field(default_factory=list)
    selected_typeof_product: List[str] = Field(default_factory=list)
    gtins_required: str = Field(default="10", alias="GTINsRequired")
    gtin8s_required: str = Field(default="no", alias="GTIN8sRequired")
    gtin8: str = Field(default="", alias="GTIN8")
    selected_fees: List[str] = Field(default_factory=list)

    # Declaration
    user_name: str = ""
    agree_terms: bool = False
    uploaded_image: Optional[str] = None

    @property
    def gtin8_required(self) -> bool:
        return self.gtin8s_required == "yes"

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with the wire (camelCase) keys."""
        return self.model_dump(by_alias=True, mode="json")


def real_addresses(addresses: List[str]) -> List[str]:
    """Drop the "-" placeholder; everything else counts as an address slot."""
    return [a for a in addresses if a != ADDRESS_SENTINEL]


def filled_address_count(addresses: List[str]) -> int:
    return len([a for a in real_addresses(addresses) if a.strip() != ""])


class FormStore:
    """Holds one FormState and applies immutable-style partial updates."""

    def __init__(self, state: FormState | None = None) -> None:
        self._state = state if state is not None else FormState()

    def get(self) -> FormState:
        return self._state.model_copy(deep=True)

    def set(self, **partial: Any) -> None:
        """Shallow-merge ``partial`` into the aggregate.

        A dict given for one of the contact keys is merged into that
        sub-record instead of replacing it.
        """
        unknown = set(partial) - set(FormState.model_fields)
        if unknown:
            raise KeyError(f"Unknown form field(s): {', '.join(sorted(unknown))}")

        update: dict[str, Any] = {}
        for key, value in partial.items():
            if key in CONTACT_KEYS and isinstance(value, dict):
                value = self._merge_contact(key, value)
            update[key] = value
        self._state = self._state.model_copy(update=update)

    def set_sub_field(self, contact_key: str, field: str, value: str) -> None:
        if contact_key not in CONTACT_KEYS:
            raise KeyError(f"Unknown contact: {contact_key!r}")
        self.set(**{contact_key: {field: value}})

    def reset(self) -> None:
        self._state = FormState()
        logger.debug("Form state reset to defaults")

    def _merge_contact(self, contact_key: str, fields: dict[str, Any]) -> ContactInfo:
        unknown = set(fields) - set(ContactInfo.model_fields)
        if unknown:
            raise KeyError(f"Unknown contact field(s): {', '.join(sorted(unknown))}")
        if "title" in fields and fields["title"] not in TITLES:
            raise ValueError(f"Unknown title: {fields['title']!r}")
        current: ContactInfo = getattr(self._state, contact_key)
        return current.model_copy(update=fields)

    # ── Categories ───────────────────────────────────────────────────

    def toggle_category(self, category: str) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category!r}")
        selected = self._state.selected_categories
        if category in selected:
            selected = [c for c in selected if c != category]
        else:
            selected = [*selected, category]
        self.set(selected_categories=selected)

    # ── GLN addresses ────────────────────────────────────────────────

    def set_gln_required(self, required: bool) -> None:
        current = self._state.gln_addresses
        if required:
            if not current or current[0] == ADDRESS_SENTINEL:
                current = [""]
            self.set(gln_required=True, gln_addresses=list(current))
        else:
            self.set(gln_required=False, gln_addresses=[ADDRESS_SENTINEL])

    def add_gln_address(self) -> bool:
        current = self._state.gln_addresses
        if len(current) >= MAX_ADDRESSES:
            return False
        self.set(gln_addresses=[*current, ""])
        return True

    def update_gln_address(self, index: int, value: str) -> None:
        updated = list(self._state.gln_addresses)
        updated[index] = value
        self.set(gln_addresses=updated)

    def remove_gln_address(self, index: int) -> None:
        updated = list(self._state.gln_addresses)
        del updated[index]
        self.set(gln_addresses=updated)

    # ── Billing address ──────────────────────────────────────────────

    def set_billing_required(self, answer: str) -> None:
        if answer not in ("Yes", "No"):
            raise ValueError(f"billing_required must be 'Yes' or 'No', got {answer!r}")
        current = self._state.billing_addresses
        if answer == "Yes":
            if not current or current[0] == ADDRESS_SENTINEL:
                current = [""]
            self.set(billing_required="Yes", billing_addresses=list(current))
        else:
            self.set(billing_required="No", billing_addresses=[ADDRESS_SENTINEL])

    def set_billing_address(self, text: str) -> None:
        self.set(billing_addresses=[text])

    # ── Persistence between updates ──────────────────────────────────

    def dump(self) -> dict[str, Any]:
        return self._state.to_payload()

    @classmethod
    def load(cls, data: dict[str, Any] | None) -> "FormStore":
        if not data:
            return cls()
        return cls(FormState.model_validate(data))
