"""Post-load validation for Stockpile documents.

Structural checks are expressed as voluptuous schemas; cross-field invariants
that a schema cannot express (the active set must exist, set keys must match
set ids, never-expiring items carry no date) are checked afterwards.

Validation never raises for bad data. It reports every problem it finds as a
``ValidationIssue`` so the load path can hand the list to the caller.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import voluptuous as vol

from .ids import BrandedId, CategoryId, ItemId, SetId, is_stamped
from .migrations import VERSION_RE
from .models import VALID_LANGUAGES, VALID_THEMES

MAX_PERCENTAGE = 100


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation failure with the dotted path of the offending field."""

    field: str
    message: str
    value: Any = None


@dataclass(frozen=True)
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


# -----------------------------
# Validators
# -----------------------------


def _non_negative_number(value: Any) -> Any:
    if (
        isinstance(value, bool)
        or not isinstance(value, int | float)
        or not math.isfinite(value)
        or value < 0
    ):
        raise vol.Invalid("must be a non-negative number")
    return value


def _percentage(value: Any) -> Any:
    _non_negative_number(value)
    if value > MAX_PERCENTAGE:
        raise vol.Invalid("must be a number between 0 and 100")
    return value


def _stamped(kind: type[BrandedId]) -> Callable[[Any], Any]:
    def validator(value: Any) -> Any:
        if not is_stamped(value, kind):
            raise vol.Invalid(f"must be a non-empty {kind.__name__}")
        return value

    return validator


def _one_of(choices: tuple[str, ...], label: str) -> Callable[[Any], Any]:
    def validator(value: Any) -> Any:
        if value not in choices:
            raise vol.Invalid(
                f'Invalid {label}: "{value}". Must be one of: {", ".join(choices)}'
            )
        return value

    return validator


SCHEMA_SETTINGS = vol.Schema(
    {
        vol.Optional("language"): _one_of(VALID_LANGUAGES, "language"),
        vol.Optional("theme"): _one_of(VALID_THEMES, "theme"),
        vol.Optional("highContrast"): bool,
        vol.Optional("onboardingCompleted"): bool,
        vol.Optional("advancedFeatures"): {str: bool},
        vol.Optional("dailyCaloriesPerPerson"): _non_negative_number,
        vol.Optional("dailyWaterPerPerson"): _non_negative_number,
        vol.Optional("childrenRequirementPercentage"): _percentage,
    },
    extra=vol.ALLOW_EXTRA,
)

SCHEMA_HOUSEHOLD = vol.Schema(
    {
        vol.Optional("adults"): _non_negative_number,
        vol.Optional("children"): _non_negative_number,
        vol.Optional("pets"): _non_negative_number,
        vol.Optional("supplyDurationDays"): _non_negative_number,
        vol.Optional("useFreezer"): bool,
        vol.Optional("freezerHoldTimeHours"): _non_negative_number,
    },
    extra=vol.ALLOW_EXTRA,
)

SCHEMA_ITEM = vol.Schema(
    {
        vol.Required("id"): _stamped(ItemId),
        vol.Required("name"): str,
        vol.Required("itemType"): str,
        vol.Required("categoryId"): _stamped(CategoryId),
        vol.Optional("quantity"): _non_negative_number,
        vol.Optional("expirationDate"): str,
        vol.Required("neverExpires"): bool,
    },
    extra=vol.ALLOW_EXTRA,
)

SCHEMA_INVENTORY_SET = vol.Schema(
    {
        vol.Required("id"): _stamped(SetId),
        vol.Required("name"): str,
        vol.Required("household"): SCHEMA_HOUSEHOLD,
        vol.Required("items"): [SCHEMA_ITEM],
        vol.Required("customCategories"): list,
        vol.Required("customTemplates"): list,
        vol.Required("dismissedAlertIds"): list,
        vol.Required("disabledRecommendedItems"): list,
        vol.Required("disabledCategories"): list,
        vol.Required("uploadedKits"): list,
        vol.Required("selectedKitId"): str,
        vol.Optional("customRecommendedItems"): vol.Any(dict, None),
        vol.Required("lastModified"): str,
    },
    extra=vol.ALLOW_EXTRA,
)

SCHEMA_ROOT = vol.Schema(
    {
        vol.Required("schemaVersion"): vol.All(str, vol.Match(VERSION_RE)),
        vol.Required("settings"): SCHEMA_SETTINGS,
        vol.Required("activeSetId"): _stamped(SetId),
        vol.Required("sets"): vol.All(
            dict, vol.Length(min=1, msg="must hold at least one set"), {str: SCHEMA_INVENTORY_SET}
        ),
    },
    extra=vol.ALLOW_EXTRA,
)

# Loose structural check for flattened payloads
SCHEMA_APP_DATA_SHAPE = vol.Schema(
    {
        vol.Required("schemaVersion"): str,
        vol.Required("household"): dict,
        vol.Required("settings"): dict,
        vol.Required("items"): list,
        vol.Required("lastModified"): str,
    },
    extra=vol.ALLOW_EXTRA,
)


# -----------------------------
# Helpers
# -----------------------------


def _value_at(doc: Any, path: list[Any]) -> Any:
    cursor = doc
    for part in path:
        if isinstance(cursor, dict):
            cursor = cursor.get(part)
        elif isinstance(cursor, list) and isinstance(part, int) and 0 <= part < len(cursor):
            cursor = cursor[part]
        else:
            return None
    return cursor


def _schema_issues(schema: vol.Schema, doc: Any, *, prefix: str = "") -> list[ValidationIssue]:
    try:
        schema(doc)
    except vol.MultipleInvalid as exc:
        errors = exc.errors
    except vol.Invalid as exc:
        errors = [exc]
    else:
        return []

    issues: list[ValidationIssue] = []
    for err in errors:
        dotted = ".".join(str(part) for part in err.path)
        if prefix:
            dotted = f"{prefix}.{dotted}" if dotted else prefix
        issues.append(
            ValidationIssue(field=dotted, message=err.error_message, value=_value_at(doc, err.path))
        )
    return issues


def _invariant_issues(doc: dict[str, Any]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    sets = doc.get("sets")
    if not isinstance(sets, dict):
        return issues

    active = doc.get("activeSetId")
    if active not in sets:
        issues.append(
            ValidationIssue(
                field="activeSetId",
                message="activeSetId must reference an existing inventory set",
                value=active,
            )
        )

    for key, inv_set in sets.items():
        if not isinstance(inv_set, dict):
            continue
        if inv_set.get("id") != key:
            issues.append(
                ValidationIssue(
                    field=f"sets.{key}.id",
                    message="inventory set id must match its key",
                    value=inv_set.get("id"),
                )
            )
        items = inv_set.get("items")
        if not isinstance(items, list):
            continue
        for index, item in enumerate(items):
            if not isinstance(item, dict) or "expirationDate" not in item:
                continue
            if item.get("neverExpires") is True:
                issues.append(
                    ValidationIssue(
                        field=f"sets.{key}.items.{index}.expirationDate",
                        message="expirationDate must be absent when neverExpires is true",
                        value=item.get("expirationDate"),
                    )
                )
    return issues


# -----------------------------
# Public API
# -----------------------------


def validate_root(doc: Any) -> ValidationResult:
    """Validate a normalized, migrated root document."""

    if not isinstance(doc, dict):
        return ValidationResult(
            [ValidationIssue(field="", message="document must be an object", value=doc)]
        )
    issues = _schema_issues(SCHEMA_ROOT, doc)
    issues.extend(_invariant_issues(doc))
    return ValidationResult(issues)


def is_valid_app_data(data: Any) -> bool:
    """Return True when ``data`` has the structure of a flattened AppData."""

    return not _schema_issues(SCHEMA_APP_DATA_SHAPE, data)


def validate_app_data_values(data: dict[str, Any]) -> ValidationResult:
    """Validate settings and household values of a flattened payload."""

    issues: list[ValidationIssue] = []
    if isinstance(data.get("settings"), dict):
        issues.extend(_schema_issues(SCHEMA_SETTINGS, data["settings"], prefix="settings"))
    if isinstance(data.get("household"), dict):
        issues.extend(_schema_issues(SCHEMA_HOUSEHOLD, data["household"], prefix="household"))
    return ValidationResult(issues)
