"""
Setting value validation.

Setting values are a tagged union over string, number, boolean, array
and object. The tag selects a pydantic model that checks the shape; the
optional validation rules (required, min, max, min_length, max_length,
pattern, options) are then applied to the parsed value.
"""

import re
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictStr,
    TypeAdapter,
    ValidationError,
    field_validator,
)


class StringValue(BaseModel):
    value_type: Literal["string"]
    value: StrictStr | None = None


class NumberValue(BaseModel):
    value_type: Literal["number"]
    value: Decimal | None = None

    @field_validator("value", mode="before")
    @classmethod
    def reject_bool(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("boolean is not a number")
        return v


class BooleanValue(BaseModel):
    value_type: Literal["boolean"]
    value: StrictBool | None = None


class ArrayValue(BaseModel):
    value_type: Literal["array"]
    value: list[Any] | None = None


class ObjectValue(BaseModel):
    value_type: Literal["object"]
    value: dict[str, Any] | None = None


SettingValue = Annotated[
    StringValue | NumberValue | BooleanValue | ArrayValue | ObjectValue,
    Field(discriminator="value_type"),
]

_setting_value_adapter = TypeAdapter(SettingValue)


def _to_json(value: Any) -> Any:
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    return value


def _check_rules(value: Any, rules: dict[str, Any]) -> str | None:
    """Return first rule violation message, None if all pass."""
    if value is None or value == "":
        return "Value is required" if rules.get("required") else None

    if "min" in rules and isinstance(value, Decimal) and value < Decimal(str(rules["min"])):
        return f"Value must be at least {rules['min']}"
    if "max" in rules and isinstance(value, Decimal) and value > Decimal(str(rules["max"])):
        return f"Value must be at most {rules['max']}"

    if isinstance(value, str | list):
        if "min_length" in rules and len(value) < rules["min_length"]:
            return f"Length must be at least {rules['min_length']}"
        if "max_length" in rules and len(value) > rules["max_length"]:
            return f"Length must be at most {rules['max_length']}"

    if "pattern" in rules and isinstance(value, str):
        if not re.fullmatch(rules["pattern"], value):
            return "Value does not match required pattern"

    options = rules.get("options")
    if options:
        candidate = _to_json(value)
        if candidate not in options:
            return f"Value must be one of: {', '.join(map(str, options))}"

    return None


def validate_setting_value(
    value_type: str,
    value: Any,
    rules: dict[str, Any] | None = None,
) -> tuple[bool, Any, str | None]:
    """
    Validate a setting value against its tag and rules.

    Args:
        value_type: string, number, boolean, array or object
        value: Candidate value
        rules: Validation rules stored with the setting

    Returns:
        Tuple of (is_valid, json_ready_value, error_message)

    Examples:
        >>> validate_setting_value("number", 5, {"min": 1, "max": 20})
        (True, 5, None)
        >>> validate_setting_value("boolean", "yes")[0]
        False
    """
    try:
        parsed = _setting_value_adapter.validate_python(
            {"value_type": value_type, "value": value}
        )
    except ValidationError as e:
        first = e.errors()[0]
        return False, None, first["msg"]

    error = _check_rules(parsed.value, rules or {})
    if error:
        return False, None, error

    return True, _to_json(parsed.value), None
