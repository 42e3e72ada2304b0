"""
Field Validator Module

Pure checks of a single form value against a static FieldRule. Nothing here
raises for bad input: unparseable numbers, wrong types, and blank strings all
come back as ValidationResult failures.

Example Usage:
    from src.utils.field_validator import validate, validate_fields
    from src.utils.phase_rules import rules_for
    from src.models.phase import Phase

    result = validate("graduation_year", "1850", rules_for(Phase.PHASE_2)["graduation_year"])
    # ValidationResult(field="graduation_year", valid=False, message="Graduation year must be between ...")

    results = validate_fields({"first_name": "Jane"}, rules_for(Phase.PHASE_1))
"""

import re
from typing import Any, Iterable, Mapping, Optional

import structlog

from src.models.validation import OTHER_SENTINEL, FieldRule, ValidationResult

logger = structlog.get_logger(__name__)


def is_blank(value: Any) -> bool:
    """True for None, empty-after-trim strings, and lists with no non-blank items."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset)):
        return all(is_blank(item) for item in value)
    return False


def count_words(text: str) -> int:
    """Count words, treating any run of whitespace as a single separator."""
    return len(text.split())


def parse_int(value: Any) -> Optional[int]:
    """Parse an integer form value, returning None instead of raising."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def selects_other(companion: Any) -> bool:
    """True when a selection (or any item of a multi-selection) is the "Other" sentinel."""
    if isinstance(companion, (list, tuple, set, frozenset)):
        return any(_as_text(item) == OTHER_SENTINEL for item in companion)
    return _as_text(companion) == OTHER_SENTINEL


def _as_text(value: Any) -> str:
    # str-valued enums compare by their value
    if value is None:
        return ""
    return str(getattr(value, "value", value)).strip()


def _message(rule: FieldRule, key: str, default: str) -> str:
    return rule.messages.get(key, default)


def is_required(rule: FieldRule, context: Optional[Mapping[str, Any]] = None) -> bool:
    """Whether a rule demands a value, given the other fields submitted with it."""
    if rule.required:
        return True
    if rule.required_if and context is not None:
        return selects_other(context.get(rule.required_if))
    return False


def _validate_items(field_id: str, items: list[Any], rule: FieldRule) -> ValidationResult:
    present = [item for item in items if not is_blank(item)]

    if rule.min_items is not None and len(present) < rule.min_items:
        return ValidationResult.fail(
            field_id,
            _message(
                rule,
                "min_items",
                f"Please select at least {rule.min_items} {rule.label.lower()}",
            ),
        )

    if rule.choices is not None:
        invalid = [_as_text(item) for item in present if _as_text(item) not in rule.choices]
        if invalid:
            return ValidationResult.fail(
                field_id,
                _message(
                    rule,
                    "choices",
                    f"Invalid {rule.label.lower()}: {', '.join(invalid)}",
                ),
            )

    if rule.max_length is not None:
        for item in present:
            if len(_as_text(item)) > rule.max_length:
                return ValidationResult.fail(
                    field_id,
                    f"Each {rule.label.lower()} entry cannot exceed {rule.max_length} characters",
                )

    return ValidationResult.ok(field_id)


def _validate_scalar(field_id: str, value: Any, rule: FieldRule) -> ValidationResult:
    if rule.integer or rule.min_value is not None or rule.max_value is not None:
        number = parse_int(value)
        if number is None:
            return ValidationResult.fail(
                field_id,
                _message(rule, "integer", f"{rule.label} must be a whole number"),
            )
        too_low = rule.min_value is not None and number < rule.min_value
        too_high = rule.max_value is not None and number > rule.max_value
        if too_low or too_high:
            if rule.min_value is not None and rule.max_value is not None:
                default = f"{rule.label} must be between {rule.min_value} and {rule.max_value}"
            elif too_low:
                default = f"{rule.label} must be at least {rule.min_value}"
            else:
                default = f"{rule.label} must be at most {rule.max_value}"
            return ValidationResult.fail(field_id, _message(rule, "bounds", default))
        return ValidationResult.ok(field_id)

    if isinstance(value, (dict, list, tuple, set, frozenset)):
        return ValidationResult.fail(field_id, f"{rule.label} must be text")

    text = _as_text(value)

    if rule.choices is not None and text not in rule.choices:
        return ValidationResult.fail(
            field_id,
            _message(rule, "choices", f"Please select a valid {rule.label.lower()}"),
        )

    if rule.min_length is not None and len(text) < rule.min_length:
        return ValidationResult.fail(
            field_id,
            _message(
                rule,
                "min_length",
                f"{rule.label} must be at least {rule.min_length} characters",
            ),
        )
    if rule.max_length is not None and len(text) > rule.max_length:
        return ValidationResult.fail(
            field_id,
            _message(
                rule,
                "max_length",
                f"{rule.label} cannot exceed {rule.max_length} characters",
            ),
        )

    if rule.min_words is not None or rule.max_words is not None:
        words = count_words(text)
        if rule.min_words is not None and words < rule.min_words:
            return ValidationResult.fail(
                field_id,
                _message(
                    rule,
                    "min_words",
                    f"{rule.label} must contain at least {rule.min_words} words",
                ),
            )
        if rule.max_words is not None and words > rule.max_words:
            return ValidationResult.fail(
                field_id,
                _message(
                    rule,
                    "max_words",
                    f"{rule.label} cannot exceed {rule.max_words} words",
                ),
            )

    if rule.pattern is not None and not re.fullmatch(rule.pattern, re.sub(r"\s", "", text)):
        return ValidationResult.fail(
            field_id,
            _message(rule, "pattern", f"Please enter a valid {rule.label.lower()}"),
        )

    return ValidationResult.ok(field_id)


def validate(
    field_id: str,
    value: Any,
    rule: FieldRule,
    context: Optional[Mapping[str, Any]] = None,
) -> ValidationResult:
    """
    Validate one field value against its rule.

    Args:
        field_id: Field name, echoed in the result
        value: Raw form value (string, number, list, or None)
        rule: Static rule for the field
        context: The other values submitted alongside this one; consulted
            only for conditional ("specify other") requirements

    Returns:
        ValidationResult with valid=False and a message on the first failed check
    """
    if is_blank(value):
        if is_required(rule, context):
            return ValidationResult.fail(
                field_id, _message(rule, "required", f"{rule.label} is required")
            )
        return ValidationResult.ok(field_id)

    if rule.many:
        # A lone string is a single selection
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            return ValidationResult.fail(field_id, f"{rule.label} must be a list of values")
        return _validate_items(field_id, list(value), rule)

    return _validate_scalar(field_id, value, rule)


def validate_fields(
    data: Mapping[str, Any],
    rule_set: Mapping[str, FieldRule],
    skip: Iterable[str] = (),
) -> list[ValidationResult]:
    """
    Validate every field of a rule set against submitted data.

    Fields missing from ``data`` are validated as None, so required fields
    that were never supplied fail.

    Args:
        data: Submitted field values
        rule_set: Rule table for one phase
        skip: Field names to leave out (e.g. a deferrable prerequisite)

    Returns:
        One ValidationResult per validated field, in rule-table order
    """
    skipped = set(skip)
    results = [
        validate(field_id, data.get(field_id), rule, context=data)
        for field_id, rule in rule_set.items()
        if field_id not in skipped
    ]
    failures = [r.field for r in results if not r.valid]
    logger.debug(
        "fields_validated",
        checked=len(results),
        failed=failures,
    )
    return results


def failures(results: Iterable[ValidationResult]) -> list[ValidationResult]:
    """Return only the failed results."""
    return [result for result in results if not result.valid]
