"""
Data normalizer for the recipe engine.

Preparation documents come straight from free-text form fields, so weights
and prices arrive as numbers, as strings with either decimal separator
("12,5", "0.9 kg"), or empty. Everything the calculators consume goes
through here first.

Coercion is lenient on purpose: an unparseable value becomes 0 instead of
an error, so a half-filled form still gets live metrics. The validation
engine is where bad input gets reported.
"""
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional


ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)

# Anything larger is treated like infinity
MAX_MAGNITUDE = Decimal("1e12")

# Leading numeric part of a string, like JavaScript's parseFloat
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

# Composite reference ids look like "<ingredient id>_<timestamp>". Shorter
# numeric suffixes ("tomato_2") belong to the ingredient id itself.
TIMESTAMP_MIN_DIGITS = 9
_COMPOSITE_ID = re.compile(r"(.+)_(\d{%d,})" % TIMESTAMP_MIN_DIGITS)

WEIGHT_FIELDS = (
    "weight_frozen",
    "weight_thawed",
    "weight_raw",
    "weight_clean",
    "weight_pre_cooking",
    "weight_cooked",
    "weight_portioned",
)

# Order used to pick a starting weight when no process says otherwise
INITIAL_WEIGHT_PRIORITY = (
    "weight_frozen",
    "weight_raw",
    "weight_thawed",
    "weight_clean",
    "weight_pre_cooking",
    "weight_cooked",
    "weight_portioned",
    "quantity",
)

_EMPTY_STRINGS = {"", "null", "undefined", "none", "nan"}


def to_number(value: Any) -> Decimal:
    """
    Coerce any input into a finite Decimal.

    Returns Decimal(0) for None, empty strings, booleans, unparseable text,
    NaN and infinities. Never raises.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        number = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", ".", 1)
        match = _NUMBER_PREFIX.match(cleaned)
        if not match:
            return ZERO
        try:
            number = Decimal(match.group(0))
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not number.is_finite() or abs(number) > MAX_MAGNITUDE:
        return ZERO
    return number


def non_negative(value: Any) -> Decimal:
    """to_number, with negative results clamped to zero."""
    number = to_number(value)
    return number if number > 0 else ZERO


def clean_string(value: Any) -> str:
    """Strip a value to a string; None and placeholder strings become ''."""
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return "" if text.lower() in _EMPTY_STRINGS else text


def is_populated(value: Any) -> bool:
    """True when a form field carries something other than blank."""
    if value is None:
        return False
    if isinstance(value, str):
        return clean_string(value) != ""
    return True


def safe_divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Division that yields 0 instead of raising on a zero denominator."""
    if denominator <= 0:
        return ZERO
    result = numerator / denominator
    return result if result.is_finite() else ZERO


def field_value(source: Any, key: str, default: Any = None) -> Any:
    """Read a key from a mapping or an attribute from an object."""
    if source is None:
        return default
    if isinstance(source, Mapping):
        return source.get(key, default)
    return getattr(source, key, default)


def resolve_ingredient_id(reference: Any) -> str:
    """
    Ingredient foreign key of an ingredient-reference.

    Uses the explicit ``ingredient_id`` when present. Older documents only
    carry a composite ``id`` of the form ``<ingredient id>_<timestamp>``;
    a suffix of at least ``TIMESTAMP_MIN_DIGITS`` digits is stripped and
    the remainder used as-is.
    """
    explicit = clean_string(field_value(reference, "ingredient_id"))
    if explicit:
        return explicit

    reference_id = clean_string(field_value(reference, "id"))
    match = _COMPOSITE_ID.fullmatch(reference_id)
    if match:
        return match.group(1)
    return reference_id


@dataclass(frozen=True)
class NormalizedIngredient:
    """An ingredient-reference with every number coerced."""
    id: str
    ingredient_id: str
    name: str
    current_price: Decimal
    raw_price_kg: Decimal
    weights: dict = field(default_factory=dict)

    @property
    def price_per_kg(self) -> Decimal:
        return self.raw_price_kg if self.raw_price_kg > 0 else self.current_price

    def weight(self, field_name: str) -> Decimal:
        return self.weights.get(field_name, ZERO)

    def first_weight(self, field_names) -> Decimal:
        """First strictly positive weight among ``field_names``."""
        for field_name in field_names:
            weight = self.weight(field_name)
            if weight > 0:
                return weight
        return ZERO


@dataclass(frozen=True)
class NormalizedSubComponent:
    """A component of an assembly: a prepared item and how much of it is used."""
    id: str
    name: str
    source_id: str
    quantity: Decimal
    cost_per_kg: Decimal
    input_total_cost: Decimal
    input_yield_weight: Decimal


@dataclass(frozen=True)
class AssemblyConfig:
    """How a finishing stage is packed: container, weight and units per container."""
    container_type: str = "cuba"
    total_weight: Decimal = ZERO
    units_quantity: Decimal = ONE
    notes: str = ""


@dataclass(frozen=True)
class NormalizedPreparation:
    id: str
    title: str
    processes: tuple
    ingredients: tuple
    sub_components: tuple
    assembly_config: Optional[AssemblyConfig] = None
    instructions: str = ""


def normalize_ingredient(reference: Any) -> NormalizedIngredient:
    weights = {name: non_negative(field_value(reference, name)) for name in WEIGHT_FIELDS}
    weights["quantity"] = non_negative(field_value(reference, "quantity"))

    return NormalizedIngredient(
        id=clean_string(field_value(reference, "id")),
        ingredient_id=resolve_ingredient_id(reference),
        name=clean_string(field_value(reference, "name")),
        current_price=non_negative(field_value(reference, "current_price")),
        raw_price_kg=non_negative(field_value(reference, "raw_price_kg")),
        weights=weights,
    )


def normalize_sub_component(sub_component: Any) -> NormalizedSubComponent:
    quantity = non_negative(field_value(sub_component, "quantity"))
    if quantity == 0:
        quantity = non_negative(field_value(sub_component, "assembly_weight_kg"))

    return NormalizedSubComponent(
        id=clean_string(field_value(sub_component, "id")),
        name=clean_string(field_value(sub_component, "name")),
        source_id=clean_string(field_value(sub_component, "source_id")),
        quantity=quantity,
        cost_per_kg=non_negative(field_value(sub_component, "cost_per_kg")),
        input_total_cost=non_negative(field_value(sub_component, "input_total_cost")),
        input_yield_weight=non_negative(field_value(sub_component, "input_yield_weight")),
    )


def normalize_assembly_config(config: Any) -> Optional[AssemblyConfig]:
    if not config:
        return None

    units = non_negative(field_value(config, "units_quantity"))
    return AssemblyConfig(
        container_type=clean_string(field_value(config, "container_type")) or "cuba",
        total_weight=non_negative(field_value(config, "total_weight")),
        units_quantity=units if units > 0 else ONE,
        notes=clean_string(field_value(config, "notes")),
    )


def normalize_processes(processes: Any) -> tuple:
    """Lower-cased, de-duplicated process tags in their original order."""
    if isinstance(processes, str):
        processes = [processes]
    if not isinstance(processes, (list, tuple, set, frozenset)):
        return ()

    seen = []
    for tag in processes:
        key = clean_string(tag).lower()
        if key and key not in seen:
            seen.append(key)
    return tuple(seen)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return []


def normalize_preparation(preparation: Any, index: int = 0) -> NormalizedPreparation:
    return NormalizedPreparation(
        id=clean_string(field_value(preparation, "id")) or f"prep-{index + 1}",
        title=clean_string(field_value(preparation, "title")),
        processes=normalize_processes(field_value(preparation, "processes")),
        ingredients=tuple(
            normalize_ingredient(ref) for ref in _as_list(field_value(preparation, "ingredients"))
        ),
        sub_components=tuple(
            normalize_sub_component(sc) for sc in _as_list(field_value(preparation, "sub_components"))
        ),
        assembly_config=normalize_assembly_config(field_value(preparation, "assembly_config")),
        instructions=clean_string(field_value(preparation, "instructions")),
    )


def normalize_preparations(preparations: Any) -> list[NormalizedPreparation]:
    return [
        normalize_preparation(prep, index)
        for index, prep in enumerate(_as_list(preparations))
    ]
