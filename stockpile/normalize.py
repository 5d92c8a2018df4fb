"""Normalization of loosely-typed documents entering Stockpile.

Every document that comes from the key-value store or from an import file
passes through here before anything else looks at it. The functions are pure
(inputs are deep-copied, never mutated) and idempotent: normalizing twice
yields the same result as normalizing once.

Normalization is lenient. Values that cannot be stamped as identifiers are
left in place so the validator can report them with their field path instead
of the normalizer failing half-way through a document.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from copy import deepcopy
from typing import Any, Final

from .const import (
    CUSTOM_ITEM_TYPE,
    DEFAULT_KIT_ID,
    DEFAULT_SET_ID,
    DEFAULT_SET_NAME,
    LEGACY_DEFAULT_VERSION,
)
from .ids import (
    BrandedId,
    create_alert_id,
    create_category_id,
    create_item_id,
    create_kit_id,
    create_recommended_item_id,
    create_set_id,
    create_template_id,
)
from .models import (
    SET_DATA_KEYS,
    create_default_household,
    create_default_settings,
    iso_utc_now,
)

TEMPLATE_ID_RE: Final = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

# Top-level keys that identify the pre-multi-set single document shape
_LEGACY_APP_DATA_KEYS: Final[frozenset[str]] = frozenset({"items", "household", "settings"})


def _stamp_or_keep(factory: Callable[[object], BrandedId], value: Any) -> Any:
    if isinstance(value, str) and value:
        return factory(value)
    return value


def _stamp_each(factory: Callable[[object], BrandedId], values: Any) -> list[Any]:
    if not isinstance(values, list):
        return []
    return [_stamp_or_keep(factory, value) for value in values]


def _stamp_record_ids(
    factory: Callable[[object], BrandedId], records: Any
) -> list[Any]:
    if not isinstance(records, list):
        return []
    result: list[Any] = []
    for record in records:
        if isinstance(record, dict):
            record = {**record, "id": _stamp_or_keep(factory, record.get("id"))}
        result.append(record)
    return result


def normalize_item_type(item_type: Any) -> str:
    """Return ``item_type`` if it is a kebab-case template id, else ``custom``."""

    if isinstance(item_type, str) and TEMPLATE_ID_RE.match(item_type):
        return item_type
    return CUSTOM_ITEM_TYPE


def normalize_item(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalize a single inventory item.

    - stamps ``id``, ``categoryId`` and ``productTemplateId``
    - canonicalizes ``itemType``
    - rewrites the legacy ``expirationDate: null`` marker to
      ``neverExpires: True`` and drops any date on never-expiring items
    """

    item = deepcopy(raw) if isinstance(raw, dict) else {}
    item["id"] = _stamp_or_keep(create_item_id, item.get("id"))
    item["categoryId"] = _stamp_or_keep(create_category_id, item.get("categoryId"))
    item["itemType"] = normalize_item_type(item.get("itemType"))

    template_id = item.get("productTemplateId")
    if template_id:
        item["productTemplateId"] = _stamp_or_keep(create_template_id, template_id)
    else:
        item.pop("productTemplateId", None)

    if "expirationDate" in item and item["expirationDate"] is None:
        del item["expirationDate"]
        item["neverExpires"] = True
    item.setdefault("neverExpires", False)
    if item["neverExpires"] is True:
        item.pop("expirationDate", None)
    return item


def normalize_items(items: Any) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        return []
    return [normalize_item(item) for item in items]


def normalize_settings(raw: Any) -> dict[str, Any]:
    """Fill missing settings keys from the default settings provider."""

    settings: dict[str, Any] = dict(create_default_settings())
    if not isinstance(raw, dict):
        return settings
    incoming = deepcopy(raw)
    features = incoming.pop("advancedFeatures", None)
    settings.update(incoming)
    if isinstance(features, dict):
        settings["advancedFeatures"] = {**settings["advancedFeatures"], **features}
    elif features is not None:
        settings["advancedFeatures"] = features
    return settings


def normalize_household(raw: Any) -> dict[str, Any]:
    household: dict[str, Any] = dict(create_default_household())
    if isinstance(raw, dict):
        household.update(deepcopy(raw))
    return household


def normalize_set_data(raw: dict[str, Any], *, fill_defaults: bool = True) -> dict[str, Any]:
    """Normalize the per-set payload keys of ``raw``.

    Keys outside the set payload are passed through untouched. With
    ``fill_defaults`` False only keys already present are normalized, which
    is what section-scoped merges need.
    """

    data = deepcopy(raw) if isinstance(raw, dict) else {}

    def wanted(key: str) -> bool:
        return fill_defaults or key in data

    if wanted("household"):
        data["household"] = normalize_household(data.get("household"))
    if wanted("items"):
        data["items"] = normalize_items(data.get("items"))
    if wanted("customCategories"):
        data["customCategories"] = _stamp_record_ids(
            create_category_id, data.get("customCategories")
        )
    if wanted("customTemplates"):
        data["customTemplates"] = _stamp_record_ids(
            create_template_id, data.get("customTemplates")
        )
    if wanted("dismissedAlertIds"):
        data["dismissedAlertIds"] = _stamp_each(create_alert_id, data.get("dismissedAlertIds"))
    if wanted("disabledRecommendedItems"):
        data["disabledRecommendedItems"] = _stamp_each(
            create_recommended_item_id, data.get("disabledRecommendedItems")
        )
    if wanted("disabledCategories"):
        data["disabledCategories"] = _stamp_each(
            create_category_id, data.get("disabledCategories")
        )
    if wanted("uploadedKits"):
        kits = data.get("uploadedKits")
        data["uploadedKits"] = kits if isinstance(kits, list) else []
    if wanted("selectedKitId"):
        data["selectedKitId"] = _stamp_or_keep(
            create_kit_id, data.get("selectedKitId") or DEFAULT_KIT_ID
        )
    if fill_defaults and not data.get("lastModified"):
        data["lastModified"] = iso_utc_now()
    return data


def document_version(raw: dict[str, Any]) -> Any:
    """Return the schema version a raw document declares.

    Accepts the legacy ``version`` key and falls back to the oldest schema for
    documents that carry no version at all.
    """

    version = raw.get("schemaVersion")
    if version is None:
        version = raw.get("version")
    return LEGACY_DEFAULT_VERSION if version is None else version


def normalize_app_data(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalize a flattened single-set payload (AppData or a full export)."""

    data = normalize_set_data(raw)
    data["schemaVersion"] = document_version(data)
    data.pop("version", None)
    data["settings"] = normalize_settings(data.get("settings"))
    return data


def is_legacy_app_data(raw: Any) -> bool:
    """Return True for the pre-multi-set single document shape."""

    return (
        isinstance(raw, dict)
        and "sets" not in raw
        and "activeSetId" not in raw
        and bool(_LEGACY_APP_DATA_KEYS & raw.keys())
    )


def _wrap_legacy_app_data(raw: dict[str, Any]) -> dict[str, Any]:
    payload = {key: deepcopy(raw[key]) for key in SET_DATA_KEYS if key in raw}
    payload["id"] = DEFAULT_SET_ID
    payload["name"] = DEFAULT_SET_NAME
    return {
        "schemaVersion": document_version(raw),
        "settings": deepcopy(raw.get("settings")),
        "activeSetId": DEFAULT_SET_ID,
        "sets": {DEFAULT_SET_ID: payload},
    }


def normalize_root(raw: dict[str, Any]) -> dict[str, Any]:
    """Normalize a root document loaded from storage.

    Legacy single-set documents are wrapped into a root holding one
    ``Default`` set first.
    """

    source = _wrap_legacy_app_data(raw) if is_legacy_app_data(raw) else raw
    root: dict[str, Any] = {
        key: deepcopy(value)
        for key, value in source.items()
        if key not in {"version", "schemaVersion", "settings", "activeSetId", "sets"}
    }
    root["schemaVersion"] = document_version(source)
    root["settings"] = normalize_settings(source.get("settings"))

    sets: dict[Any, Any] = {}
    raw_sets = source.get("sets")
    if isinstance(raw_sets, dict):
        for key, raw_set in raw_sets.items():
            if not isinstance(raw_set, dict):
                sets[_stamp_or_keep(create_set_id, key)] = raw_set
                continue
            inv_set = normalize_set_data(raw_set)
            inv_set["id"] = _stamp_or_keep(create_set_id, raw_set.get("id") or key)
            inv_set["name"] = inv_set.get("name") if isinstance(inv_set.get("name"), str) else ""
            sets[_stamp_or_keep(create_set_id, key)] = inv_set
    root["sets"] = sets
    root["activeSetId"] = _stamp_or_keep(create_set_id, source.get("activeSetId"))
    return root
