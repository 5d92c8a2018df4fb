"""Offline tests for export and import.

Scenarios:
- unique_name picks the first free "(imported)" variant
- Full export carries metadata counts; selective export omits unselected sections
- Full import: version gate, legacy null expiration fix-up, forced onboarding, migration
- Parse-only import leaves the payload untouched
- Section merge only overwrites selected sections and refreshes lastModified
- Multi-set export skips unknown ids; multi-set import works by index,
  skips out-of-range indexes and avoids name collisions
- Multi-set import logs its summary at DEBUG level and rejects non-string names
"""

from __future__ import annotations

import json
import logging
from typing import Any

import pytest
from stockpile.const import APP_VERSION, CURRENT_SCHEMA_VERSION, STANDARD_CATEGORY_COUNT
from stockpile.exceptions import ParseError, UnsupportedVersionError, ValidationError
from stockpile.ids import CategoryId, ItemId
from stockpile.inventory_sets import create_set, flatten
from stockpile.models import create_default_root
from stockpile.transfer import (
    IMPORTED_SET_NAME,
    LEGACY_IMPORT_SET_NAME,
    export_multi_inventory,
    export_to_json,
    export_to_json_selective,
    get_section_info,
    get_sections_with_data,
    import_from_json,
    import_multi_inventory,
    merge_import_data,
    parse_import_json,
    parse_multi_inventory_import,
    unique_name,
)

OUT_OF_RANGE_INDEX = 5
STALE_TIMESTAMP = "2000-01-01T00:00:00Z"


def _app_data(items: list[dict[str, Any]]) -> dict[str, Any]:
    data = flatten(create_default_root())
    data["items"] = items
    data["customCategories"] = [{"id": "camping", "name": "Camping", "isCustom": True}]
    return data


def _root_with_sets(sample_item: dict[str, Any]) -> tuple[dict[str, Any], str]:
    root, car_id = create_set(create_default_root(), "Car")
    root["sets"]["default"]["items"] = [sample_item]
    root["sets"][car_id]["items"] = [{**sample_item, "id": "car-water"}]
    return root, car_id


# -----------------------------
# unique_name
# -----------------------------


def test_unique_name_cases() -> None:
    assert unique_name("Home", []) == "Home"
    assert unique_name("Home", ["Home"]) == "Home (imported)"
    assert unique_name("Home", ["Home", "Home (imported)"]) == "Home (imported 2)"
    assert (
        unique_name("Home", ["Home", "Home (imported)", "Home (imported 2)"])
        == "Home (imported 3)"
    )


@pytest.mark.parametrize(
    "existing",
    [
        ["Car"],
        ["Car", "Car (imported)", "Car (imported 3)"],
        ["Car", "Car (imported)", "Car (imported 2)", "Car (imported 4)"],
    ],
)
def test_unique_name_is_never_taken(existing: list[str]) -> None:
    assert unique_name("Car", existing) not in existing


# -----------------------------
# Export
# -----------------------------


def test_full_export_metadata(sample_item) -> None:
    # Arrange
    data = _app_data([sample_item, {**sample_item, "id": "item-2"}])

    # Act
    exported = json.loads(export_to_json(data))

    # Assert
    meta = exported["exportMetadata"]
    assert meta["itemCount"] == 2
    assert meta["categoryCount"] == 1 + STANDARD_CATEGORY_COUNT
    assert meta["appVersion"] == APP_VERSION
    assert meta["exportedAt"]
    assert exported["settings"] == data["settings"]
    assert "exportMetadata" not in data


def test_selective_export_items_only(sample_item) -> None:
    data = _app_data([sample_item])

    exported = json.loads(export_to_json_selective(data, ["items"]))

    assert "settings" not in exported
    assert "household" not in exported
    assert exported["items"] == [sample_item]
    assert exported["exportMetadata"]["itemCount"] == 1
    assert exported["exportMetadata"]["categoryCount"] == 0
    assert exported["exportMetadata"]["includedSections"] == ["items"]


def test_selective_export_household_only(sample_item) -> None:
    data = _app_data([sample_item])

    exported = json.loads(export_to_json_selective(data, ["household"]))

    assert exported["household"] == data["household"]
    assert "items" not in exported
    assert "settings" not in exported
    assert exported["exportMetadata"]["itemCount"] == 0


def test_selective_export_rejects_unknown_section() -> None:
    with pytest.raises(ValidationError):
        export_to_json_selective(_app_data([]), ["items", "passwords"])


def test_section_info(sample_item) -> None:
    data = _app_data([sample_item])

    info = {entry["section"]: entry for entry in get_section_info(data)}

    assert info["items"]["count"] == 1
    assert info["customTemplates"]["hasData"] is False
    assert "household" in get_sections_with_data(data)
    assert "dismissedAlertIds" not in get_sections_with_data(data)


# -----------------------------
# Single-set import
# -----------------------------


def test_full_import_fixes_null_expiration_and_forces_onboarding(sample_item) -> None:
    # Arrange
    data = _app_data([{**sample_item, "expirationDate": None, "neverExpires": False}])
    data["settings"]["onboardingCompleted"] = False
    text = export_to_json(data)

    # Act
    imported = import_from_json(text)

    # Assert
    item = imported["items"][0]
    assert "expirationDate" not in item
    assert item["neverExpires"] is True
    assert isinstance(item["id"], ItemId)
    assert imported["settings"]["onboardingCompleted"] is True
    assert imported["schemaVersion"] == CURRENT_SCHEMA_VERSION
    assert "exportMetadata" not in imported


def test_full_import_migrates_old_files(sample_item) -> None:
    text = json.dumps(
        {"version": "1.0.0", "household": {"adults": 1, "hasPets": True}, "items": [sample_item]}
    )

    imported = import_from_json(text)

    assert imported["schemaVersion"] == CURRENT_SCHEMA_VERSION
    assert imported["household"]["pets"] == 1
    assert "hasPets" not in imported["household"]
    assert imported["disabledCategories"] == []


def test_full_import_rejects_old_version_naming_it() -> None:
    text = json.dumps({"schemaVersion": "0.9.0", "items": []})

    with pytest.raises(UnsupportedVersionError) as ei:
        import_from_json(text)

    assert "0.9.0" in str(ei.value)


@pytest.mark.parametrize("text", ["{not json", "[1, 2, 3]", '"text"'])
def test_import_rejects_malformed_payloads(text: str) -> None:
    with pytest.raises(ParseError):
        import_from_json(text)


def test_parse_import_json_only_gates(sample_item) -> None:
    text = json.dumps(
        {"schemaVersion": "1.1.0", "items": [{**sample_item, "expirationDate": None}]}
    )

    parsed = parse_import_json(text)

    assert parsed["schemaVersion"] == "1.1.0"
    assert parsed["items"][0]["expirationDate"] is None


# -----------------------------
# Section merge
# -----------------------------


def test_merge_overwrites_only_selected_sections(sample_item) -> None:
    # Arrange
    existing = _app_data([])
    existing["lastModified"] = STALE_TIMESTAMP
    imported = {
        "items": [{**sample_item, "expirationDate": None, "neverExpires": False}],
        "settings": {"theme": "dark"},
        "customCategories": [{"id": "pets", "name": "Pets", "isCustom": True}],
    }

    # Act
    merged = merge_import_data(existing, imported, ["items", "customCategories"])

    # Assert
    item = merged["items"][0]
    assert "expirationDate" not in item
    assert item["neverExpires"] is True
    assert isinstance(merged["customCategories"][0]["id"], CategoryId)
    assert merged["settings"] == existing["settings"]
    assert merged["lastModified"] != STALE_TIMESTAMP
    assert existing["items"] == []


def test_merge_skips_sections_missing_from_import() -> None:
    existing = _app_data([])

    merged = merge_import_data(
        existing, {"settings": {"theme": "dark"}}, ["household", "settings"]
    )

    assert merged["household"] == existing["household"]
    assert merged["settings"]["theme"] == "dark"
    assert merged["settings"]["onboardingCompleted"] is True


def test_merge_migrates_stale_result() -> None:
    existing = _app_data([])
    existing["schemaVersion"] = "1.1.0"

    merged = merge_import_data(existing, {}, ["items"])

    assert merged["schemaVersion"] == CURRENT_SCHEMA_VERSION


# -----------------------------
# Multi-set export / import
# -----------------------------


def test_multi_export_skips_unknown_sets(sample_item) -> None:
    # Arrange
    root, car_id = _root_with_sets(sample_item)
    selection = {
        "includeSettings": False,
        "inventorySets": [
            {"id": car_id, "sections": ["items"]},
            {"id": "missing", "sections": ["items"]},
            {"id": "default", "sections": ["household"]},
        ],
    }

    # Act
    exported = json.loads(export_multi_inventory(root, selection))

    # Assert
    assert "settings" not in exported
    assert exported["schemaVersion"] == CURRENT_SCHEMA_VERSION
    assert [entry["name"] for entry in exported["inventorySets"]] == ["Car", "Default"]
    car_entry = exported["inventorySets"][0]
    assert car_entry["includedSections"] == ["items"]
    assert car_entry["data"]["items"][0]["id"] == "car-water"
    assert "household" not in car_entry["data"]
    assert "items" not in exported["inventorySets"][1]["data"]


def test_multi_export_includes_settings_when_selected(sample_item) -> None:
    root, _ = _root_with_sets(sample_item)

    exported = json.loads(export_multi_inventory(root, {"includeSettings": True}))

    assert exported["settings"] == root["settings"]
    assert exported["inventorySets"] == []


def test_parse_legacy_file_wraps_single_entry(sample_item) -> None:
    text = export_to_json(_app_data([sample_item]))

    parsed = parse_multi_inventory_import(text)

    assert len(parsed["inventorySets"]) == 1
    entry = parsed["inventorySets"][0]
    assert entry["name"] == LEGACY_IMPORT_SET_NAME
    assert "items" in entry["includedSections"]
    assert entry["data"]["items"][0]["id"] == sample_item["id"]
    assert "settings" in parsed


def test_parse_multi_file_is_version_gated() -> None:
    text = json.dumps({"schemaVersion": "0.9.0", "inventorySets": []})

    with pytest.raises(UnsupportedVersionError):
        parse_multi_inventory_import(text)


def test_parse_multi_file_migrates_entries() -> None:
    text = json.dumps(
        {
            "schemaVersion": "1.1.0",
            "inventorySets": [
                {
                    "name": "Cabin",
                    "includedSections": ["household"],
                    "data": {"household": {"supplyDays": 4}},
                }
            ],
        }
    )

    parsed = parse_multi_inventory_import(text)

    assert parsed["schemaVersion"] == CURRENT_SCHEMA_VERSION
    assert parsed["inventorySets"][0]["data"]["household"] == {"supplyDurationDays": 4}


def test_out_of_range_index_is_skipped(sample_item) -> None:
    # Arrange: the file holds two sets
    source, _ = _root_with_sets(sample_item)
    import_data = parse_multi_inventory_import(
        export_multi_inventory(
            source,
            {"inventorySets": [{"id": set_id, "sections": ["items"]} for set_id in source["sets"]]},
        )
    )
    target = create_default_root()

    # Act
    updated, created = import_multi_inventory(
        target,
        import_data,
        {"inventorySets": [{"index": OUT_OF_RANGE_INDEX, "sections": ["items"]}]},
    )

    # Assert
    assert created == []
    assert list(updated["sets"]) == list(target["sets"])


def test_import_by_index_with_collision_safe_names(sample_item) -> None:
    # Arrange
    source, _ = _root_with_sets(sample_item)
    import_data = parse_multi_inventory_import(
        export_multi_inventory(
            source,
            {"inventorySets": [{"id": set_id, "sections": ["items"]} for set_id in source["sets"]]},
        )
    )
    target = create_default_root()
    selection = {
        "inventorySets": [
            {"index": 0, "originalName": "Default", "sections": ["items"]},
            {"index": 1, "originalName": "Car", "sections": ["items"]},
            {"index": 1, "originalName": "Car", "sections": ["household"]},
        ]
    }

    # Act
    updated, created = import_multi_inventory(target, import_data, selection)

    # Assert
    names = [updated["sets"][set_id]["name"] for set_id in created]
    assert names == ["Default (imported)", "Car", "Car (imported)"]
    assert len(set(created)) == len(created)
    assert all(set_id not in target["sets"] for set_id in created)
    assert updated["sets"][created[0]]["items"][0]["id"] == sample_item["id"]
    # Unselected sections default to empty
    assert updated["sets"][created[2]]["items"] == []
    assert target["sets"].keys() == {"default"}


def test_import_settings_forces_onboarding(sample_item) -> None:
    # Arrange
    source, _ = _root_with_sets(sample_item)
    source["settings"]["theme"] = "midnight"
    import_data = parse_multi_inventory_import(
        export_multi_inventory(source, {"includeSettings": True})
    )

    # Act
    updated, created = import_multi_inventory(
        create_default_root(), import_data, {"includeSettings": True}
    )

    # Assert
    assert created == []
    assert updated["settings"]["theme"] == "midnight"
    assert updated["settings"]["onboardingCompleted"] is True


def test_legacy_entry_is_renamed(sample_item) -> None:
    import_data = parse_multi_inventory_import(export_to_json(_app_data([sample_item])))

    unnamed, unnamed_ids = import_multi_inventory(
        create_default_root(),
        import_data,
        {"inventorySets": [{"index": 0, "sections": ["items"]}]},
    )
    named, named_ids = import_multi_inventory(
        create_default_root(),
        import_data,
        {"inventorySets": [{"index": 0, "name": "Cabin", "sections": ["items"]}]},
    )

    assert unnamed["sets"][unnamed_ids[0]]["name"] == IMPORTED_SET_NAME
    assert named["sets"][named_ids[0]]["name"] == "Cabin"


def test_multi_import_logs_summary_at_debug(
    sample_item, caplog: pytest.LogCaptureFixture
) -> None:
    # Arrange
    caplog.set_level(logging.DEBUG, logger="stockpile")
    import_data = parse_multi_inventory_import(export_to_json(_app_data([sample_item])))

    # Act
    updated, created = import_multi_inventory(
        create_default_root(),
        import_data,
        {"inventorySets": [{"index": 0, "sections": []}]},
    )

    # Assert
    assert len(created) == 1
    assert created[0] in updated["sets"]
    summary = [rec for rec in caplog.records if getattr(rec, "created_count", None) == 1]
    assert summary and getattr(summary[0], "op", None) == "import_sets"


def test_multi_import_rejects_non_string_name(sample_item) -> None:
    import_data = parse_multi_inventory_import(export_to_json(_app_data([sample_item])))
    root = create_default_root()

    with pytest.raises(ValidationError, match="must be a string"):
        import_multi_inventory(
            root,
            import_data,
            {"inventorySets": [{"index": 0, "name": 123, "sections": ["items"]}]},
        )

    assert list(root["sets"]) == ["default"]
