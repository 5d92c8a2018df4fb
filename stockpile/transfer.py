"""Export and import of Stockpile data.

Three JSON dialects are produced and consumed:

- full export: the flattened AppData plus ``exportMetadata``
- selective export: only the chosen top-level sections, with
  ``exportMetadata.includedSections``
- multi-set export: ``{schemaVersion, exportedAt, appVersion, settings?,
  inventorySets: [{name, includedSections, data}]}``

Every import runs the same version gate, normalization and migration as the
load path. Unlike the load path, imports raise: ``ParseError`` for malformed
JSON, ``UnsupportedVersionError`` for files that are too old, and
``ValidationError`` for unknown sections.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from copy import deepcopy
from typing import Any, Final, TypedDict

from . import migrations
from .const import APP_VERSION, CURRENT_SCHEMA_VERSION, DOMAIN, STANDARD_CATEGORY_COUNT
from .exceptions import ParseError, ValidationError
from .ids import SetId, new_set_id
from .models import create_inventory_set, iso_utc_now
from .normalize import document_version, normalize_app_data, normalize_set_data, normalize_settings

_LOGGER = logging.getLogger(__name__)

EXPORT_SECTIONS: Final[tuple[str, ...]] = (
    "items",
    "household",
    "settings",
    "customCategories",
    "customTemplates",
    "dismissedAlertIds",
    "disabledRecommendedItems",
    "customRecommendedItems",
)

INVENTORY_SET_SECTIONS: Final[tuple[str, ...]] = (
    "items",
    "household",
    "customCategories",
    "customTemplates",
    "dismissedAlertIds",
    "disabledRecommendedItems",
    "disabledCategories",
    "customRecommendedItems",
)

# Name given to the single entry synthesized from a legacy single-set file
LEGACY_IMPORT_SET_NAME: Final[str] = "__IMPORT_SET__"

# Used when a legacy entry is imported without the caller renaming it
IMPORTED_SET_NAME: Final[str] = "Imported"

EXPORT_INDENT: Final[int] = 2


class SectionInfo(TypedDict):
    section: str
    count: int
    hasData: bool


# -----------------------------
# Helpers
# -----------------------------


def _check_sections(sections: Iterable[str], allowed: tuple[str, ...]) -> list[str]:
    """Return ``sections`` de-duplicated in order; reject unknown names."""

    result: list[str] = []
    for section in sections:
        if section not in allowed:
            raise ValidationError(f"Unknown section: {section}")
        if section not in result:
            result.append(section)
    return result


def _parse_json_object(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError("Import data must be a JSON object")
    return data


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=EXPORT_INDENT, ensure_ascii=False)


def _normalized_section(section: str, value: Any) -> Any:
    """Run one imported section through the matching normalizer."""

    if section == "settings":
        return normalize_settings(value)
    return normalize_set_data({section: deepcopy(value)}, fill_defaults=False)[section]


def _section_count(value: Any) -> int:
    if isinstance(value, list | dict):
        return len(value)
    return 0 if value is None else 1


def unique_name(base: str, existing: Iterable[str]) -> str:
    """Return ``base`` or the first free ``(imported)`` variant of it."""

    taken = set(existing)
    if base not in taken:
        return base
    candidate = f"{base} (imported)"
    if candidate not in taken:
        return candidate
    counter = 2
    while f"{base} (imported {counter})" in taken:
        counter += 1
    return f"{base} (imported {counter})"


# -----------------------------
# Single-set export
# -----------------------------


def export_to_json(data: dict[str, Any]) -> str:
    """Serialize a full flattened view with export metadata."""

    payload = deepcopy(data)
    payload["exportMetadata"] = {
        "exportedAt": iso_utc_now(),
        "appVersion": APP_VERSION,
        "itemCount": len(data.get("items") or []),
        "categoryCount": len(data.get("customCategories") or []) + STANDARD_CATEGORY_COUNT,
    }
    return _dumps(payload)


def export_to_json_selective(data: dict[str, Any], sections: Iterable[str]) -> str:
    """Serialize only the chosen sections of a flattened view.

    Unselected sections are absent from the output. Item and category counts
    are zero unless their section was selected.
    """

    chosen = _check_sections(sections, EXPORT_SECTIONS)
    payload: dict[str, Any] = {
        "schemaVersion": data.get("schemaVersion", CURRENT_SCHEMA_VERSION),
    }
    for section in chosen:
        payload[section] = deepcopy(data.get(section))
    payload["lastModified"] = data.get("lastModified") or iso_utc_now()

    item_count = len(data.get("items") or []) if "items" in chosen else 0
    category_count = (
        len(data.get("customCategories") or []) + STANDARD_CATEGORY_COUNT
        if "customCategories" in chosen
        else 0
    )
    payload["exportMetadata"] = {
        "exportedAt": iso_utc_now(),
        "appVersion": APP_VERSION,
        "itemCount": item_count,
        "categoryCount": category_count,
        "includedSections": chosen,
    }
    return _dumps(payload)


def get_section_info(data: dict[str, Any]) -> list[SectionInfo]:
    """Describe how much data each exportable section of ``data`` holds."""

    info: list[SectionInfo] = []
    for section in EXPORT_SECTIONS:
        value = data.get(section)
        if section in {"household", "settings"}:
            count = 1 if isinstance(value, dict) else 0
        else:
            count = _section_count(value)
        info.append({"section": section, "count": count, "hasData": count > 0})
    return info


def get_sections_with_data(data: dict[str, Any]) -> list[str]:
    return [entry["section"] for entry in get_section_info(data) if entry["hasData"]]


# -----------------------------
# Single-set import
# -----------------------------


def parse_import_json(text: str) -> dict[str, Any]:
    """Parse and version-gate an import file without merging it.

    Raises ParseError or UnsupportedVersionError.
    """

    data = _parse_json_object(text)
    migrations.ensure_supported(document_version(data))
    return data


def import_from_json(text: str) -> dict[str, Any]:
    """Parse a full export into a normalized AppData at the current version."""

    data = parse_import_json(text)
    data.pop("exportMetadata", None)
    data = normalize_app_data(data)
    data["settings"]["onboardingCompleted"] = True
    if migrations.needs_migration(data):
        data = migrations.migrate(data)
    _LOGGER.debug(
        "Import parsed",
        extra={
            "domain": DOMAIN,
            "op": "import_full",
            "item_count": len(data.get("items") or []),
        },
    )
    return data


def merge_import_data(
    existing: dict[str, Any], imported: dict[str, Any], sections: Iterable[str]
) -> dict[str, Any]:
    """Overwrite the chosen sections of a copy of ``existing`` with ``imported``.

    Sections missing from ``imported`` are left as they are. ``lastModified``
    is always refreshed.
    """

    chosen = _check_sections(sections, EXPORT_SECTIONS)
    merged = deepcopy(existing)
    for section in chosen:
        if section not in imported:
            continue
        merged[section] = _normalized_section(section, imported[section])
    if "settings" in chosen and isinstance(merged.get("settings"), dict):
        merged["settings"]["onboardingCompleted"] = True

    merged["lastModified"] = iso_utc_now()
    if migrations.needs_migration(merged):
        merged = migrations.migrate(merged)
    return merged


# -----------------------------
# Multi-set export
# -----------------------------


def build_multi_inventory_export(
    root: dict[str, Any], selection: dict[str, Any]
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schemaVersion": root["schemaVersion"],
        "exportedAt": iso_utc_now(),
        "appVersion": APP_VERSION,
    }
    if selection.get("includeSettings"):
        payload["settings"] = deepcopy(root["settings"])

    exported: list[dict[str, Any]] = []
    for choice in selection.get("inventorySets") or []:
        inv_set = root["sets"].get(choice.get("id"))
        if inv_set is None:
            _LOGGER.debug(
                "Skipping unknown inventory set in export selection",
                extra={"domain": DOMAIN, "op": "export_sets", "set_id": choice.get("id")},
            )
            continue
        chosen = _check_sections(choice.get("sections") or [], INVENTORY_SET_SECTIONS)
        data: dict[str, Any] = {"name": inv_set["name"]}
        for section in chosen:
            data[section] = deepcopy(inv_set.get(section))
        data["lastModified"] = inv_set.get("lastModified")
        exported.append({"name": inv_set["name"], "includedSections": chosen, "data": data})

    payload["inventorySets"] = exported
    return payload


def export_multi_inventory(root: dict[str, Any], selection: dict[str, Any]) -> str:
    """Serialize a subset of inventory sets, each with its own sections."""

    return _dumps(build_multi_inventory_export(root, selection))


# -----------------------------
# Multi-set import
# -----------------------------


def is_multi_inventory_export(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("inventorySets"), list)


def get_inventory_set_section_info(data: dict[str, Any]) -> list[SectionInfo]:
    info: list[SectionInfo] = []
    for section in INVENTORY_SET_SECTIONS:
        value = data.get(section)
        if section == "household":
            count = 1 if isinstance(value, dict) else 0
        else:
            count = _section_count(value)
        info.append({"section": section, "count": count, "hasData": count > 0})
    return info


def convert_legacy_to_multi_inventory(data: dict[str, Any]) -> dict[str, Any]:
    """Wrap a single-set export into a multi-set import with one entry.

    The entry carries ``LEGACY_IMPORT_SET_NAME`` so the caller can ask the
    user for a real name.
    """

    set_data = {key: deepcopy(data[key]) for key in INVENTORY_SET_SECTIONS if key in data}
    set_data["name"] = LEGACY_IMPORT_SET_NAME
    included = [
        entry["section"] for entry in get_inventory_set_section_info(data) if entry["hasData"]
    ]
    result: dict[str, Any] = {
        "schemaVersion": document_version(data),
        "exportedAt": (data.get("exportMetadata") or {}).get("exportedAt") or iso_utc_now(),
        "appVersion": (data.get("exportMetadata") or {}).get("appVersion") or APP_VERSION,
        "inventorySets": [
            {"name": LEGACY_IMPORT_SET_NAME, "includedSections": included, "data": set_data}
        ],
    }
    if isinstance(data.get("settings"), dict):
        result["settings"] = deepcopy(data["settings"])
    return result


def parse_multi_inventory_import(text: str) -> dict[str, Any]:
    """Parse a multi-set or legacy single-set file into a multi-set import.

    Raises ParseError or UnsupportedVersionError. Stale set payloads are
    migrated so the result is at the current schema version.
    """

    raw = _parse_json_object(text)
    version = document_version(raw)
    migrations.ensure_supported(version)

    if is_multi_inventory_export(raw):
        data = deepcopy(raw)
        data.pop("version", None)
    else:
        data = convert_legacy_to_multi_inventory(raw)
    data["schemaVersion"] = version

    if migrations.needs_migration(data):
        for entry in data["inventorySets"]:
            if isinstance(entry, dict) and isinstance(entry.get("data"), dict):
                staged = migrations.migrate({**entry["data"], "schemaVersion": version})
                staged.pop("schemaVersion", None)
                entry["data"] = staged
        data["schemaVersion"] = CURRENT_SCHEMA_VERSION
    return data


def import_multi_inventory(
    root: dict[str, Any], import_data: dict[str, Any], selection: dict[str, Any]
) -> tuple[dict[str, Any], list[SetId]]:
    """Insert the selected entries of ``import_data`` as new inventory sets.

    Entries are addressed by index. Out-of-range indexes are skipped. Each
    imported set gets a fresh id and a name that does not collide with any
    existing set. Returns the new root and the ids of the created sets.
    Raises ValidationError for a selection name that is not a string.
    """

    staged = deepcopy(root)
    entries = import_data.get("inventorySets") or []
    created: list[SetId] = []

    for choice in selection.get("inventorySets") or []:
        index = choice.get("index")
        if (
            not isinstance(index, int)
            or isinstance(index, bool)
            or not 0 <= index < len(entries)
            or not isinstance(entries[index], dict)
        ):
            _LOGGER.debug(
                "Skipping out-of-range import selection",
                extra={"domain": DOMAIN, "op": "import_sets", "index": index},
            )
            continue

        entry = entries[index]
        source = entry.get("data") if isinstance(entry.get("data"), dict) else {}
        chosen = _check_sections(choice.get("sections") or [], INVENTORY_SET_SECTIONS)

        requested = choice.get("name")
        if requested is not None and not isinstance(requested, str):
            raise ValidationError(f"Inventory set name must be a string: {requested!r}")
        fallback = entry.get("name") if isinstance(entry.get("name"), str) else None
        base = requested or fallback or IMPORTED_SET_NAME
        if base == LEGACY_IMPORT_SET_NAME:
            base = IMPORTED_SET_NAME
        name = unique_name(base, (inv_set["name"] for inv_set in staged["sets"].values()))

        set_id = new_set_id()
        inv_set = create_inventory_set(set_id, name)
        for section in chosen:
            if section in source:
                inv_set[section] = _normalized_section(section, source[section])
        staged["sets"][set_id] = inv_set
        created.append(set_id)

    if selection.get("includeSettings") and isinstance(import_data.get("settings"), dict):
        settings = normalize_settings(import_data["settings"])
        settings["onboardingCompleted"] = True
        staged["settings"] = settings

    _LOGGER.debug(
        "Inventory sets imported",
        extra={"domain": DOMAIN, "op": "import_sets", "created_count": len(created)},
    )
    return staged, created
