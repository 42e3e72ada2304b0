"""
Validation Data Models

Field rules for the per-phase rule tables and the per-field results the
Field Validator produces.
"""

from typing import Optional

from pydantic import BaseModel, Field

OTHER_SENTINEL = "Other"


class FieldRule(BaseModel):
    """Static validation rule for one form field.

    Attributes:
        label: Human-readable field name used in messages
        required: Field must be present (non-empty after trim)
        min_length/max_length: Character bounds on the trimmed value
        min_words/max_words: Word-count bounds (whitespace split)
        integer: Value must parse as an integer
        min_value/max_value: Numeric bounds (implies integer parsing)
        choices: Closed set of allowed values (applies to each item of a list)
        many: Field holds a list of values (multi-select); every other rule
            expects a single value
        min_items: Minimum number of non-empty items for list fields
        pattern: Regex the value must fully match (spaces stripped first)
        required_if: Companion field name; this field becomes required when
            the companion equals, or contains, the "Other" sentinel
        messages: Overrides for individual failure messages, keyed by rule name
    """

    label: str
    required: bool = False
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    min_words: Optional[int] = Field(default=None, ge=0)
    max_words: Optional[int] = Field(default=None, ge=0)
    integer: bool = False
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    choices: Optional[tuple[str, ...]] = None
    many: bool = False
    min_items: Optional[int] = Field(default=None, ge=0)
    pattern: Optional[str] = None
    required_if: Optional[str] = None
    messages: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Outcome of validating a single field. Never persisted."""

    field: str
    valid: bool
    message: Optional[str] = None

    @classmethod
    def ok(cls, field: str) -> "ValidationResult":
        return cls(field=field, valid=True)

    @classmethod
    def fail(cls, field: str, message: str) -> "ValidationResult":
        return cls(field=field, valid=False, message=message)
