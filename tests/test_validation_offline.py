"""Offline tests for post-load validation.

Scenarios:
- A freshly created root document is valid
- Issues carry dotted field paths and the offending value
- Cross-field invariants: active set exists, set key matches id, expiration XOR never-expires
- Unstamped identifiers are reported
- Flattened payload structure and value checks
"""

from __future__ import annotations

from stockpile.ids import create_category_id, create_item_id, create_set_id
from stockpile.inventory_sets import flatten
from stockpile.models import create_default_root
from stockpile.validation import is_valid_app_data, validate_app_data_values, validate_root

OUT_OF_RANGE_PERCENTAGE = 150


def _fields(result) -> set[str]:
    return {issue.field for issue in result.errors}


def _stamped_item(**overrides) -> dict:
    item = {
        "id": create_item_id("i1"),
        "name": "Rice",
        "itemType": "rice",
        "categoryId": create_category_id("food"),
        "quantity": 2,
        "neverExpires": False,
        "expirationDate": "2027-01-01",
    }
    item.update(overrides)
    return item


def test_default_root_is_valid() -> None:
    result = validate_root(create_default_root())

    assert result.is_valid
    assert result.errors == []


def test_non_dict_document_is_invalid() -> None:
    result = validate_root(["not", "a", "document"])

    assert not result.is_valid


def test_missing_active_set_is_reported() -> None:
    # Arrange
    root = create_default_root()
    root["activeSetId"] = create_set_id("car")

    # Act
    result = validate_root(root)

    # Assert
    assert "activeSetId" in _fields(result)
    issue = next(i for i in result.errors if i.field == "activeSetId")
    assert issue.value == "car"


def test_set_key_must_match_set_id() -> None:
    root = create_default_root()
    root["sets"]["default"]["id"] = create_set_id("home")

    result = validate_root(root)

    assert "sets.default.id" in _fields(result)


def test_empty_set_collection_is_reported() -> None:
    root = create_default_root()
    root["sets"] = {}

    result = validate_root(root)

    assert "sets" in _fields(result)


def test_unstamped_item_id_is_reported() -> None:
    root = create_default_root()
    root["sets"]["default"]["items"] = [_stamped_item(id="i1")]

    result = validate_root(root)

    assert _fields(result) == {"sets.default.items.0.id"}


def test_never_expires_with_date_is_reported() -> None:
    root = create_default_root()
    root["sets"]["default"]["items"] = [_stamped_item(neverExpires=True)]

    result = validate_root(root)

    assert "sets.default.items.0.expirationDate" in _fields(result)


def test_invalid_settings_values_are_reported_with_paths() -> None:
    # Arrange
    root = create_default_root()
    root["settings"]["theme"] = "neon"
    root["sets"]["default"]["household"]["adults"] = -1

    # Act
    result = validate_root(root)

    # Assert
    assert {"settings.theme", "sets.default.household.adults"} <= _fields(result)
    theme_issue = next(i for i in result.errors if i.field == "settings.theme")
    assert 'Invalid theme: "neon"' in theme_issue.message
    assert theme_issue.value == "neon"


def test_malformed_schema_version_is_reported() -> None:
    root = create_default_root()
    root["schemaVersion"] = "1.2"

    result = validate_root(root)

    assert "schemaVersion" in _fields(result)


def test_app_data_shape() -> None:
    assert is_valid_app_data(flatten(create_default_root()))
    assert not is_valid_app_data({"items": []})
    assert not is_valid_app_data("not a dict")


def test_app_data_values() -> None:
    # Arrange
    data = flatten(create_default_root())
    data["settings"]["childrenRequirementPercentage"] = OUT_OF_RANGE_PERCENTAGE
    data["household"]["useFreezer"] = "yes"

    # Act
    result = validate_app_data_values(data)

    # Assert
    assert _fields(result) == {
        "settings.childrenRequirementPercentage",
        "household.useFreezer",
    }
