"""Inventory set operations on a root document.

Every function here is pure: it takes a root document and returns a new one,
leaving the input untouched. Operations on unknown set ids (and deleting the
last remaining set) are no-ops that return the input document itself, so
callers can detect "nothing changed" with an identity check.

``flatten``/``unflatten`` convert between the persisted root shape and the
flattened single-set view the application works with.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any

from .const import DEFAULT_SET_NAME, DOMAIN
from .ids import SetId, create_set_id, new_set_id
from .models import SET_DATA_KEYS, SetSummary, create_inventory_set

LOGGER = logging.getLogger(__name__)


def _with_sets(root: dict[str, Any]) -> dict[str, Any]:
    """Copy the root and its set mapping so one entry can be replaced."""

    staged = dict(root)
    staged["sets"] = dict(root["sets"])
    return staged


def list_sets(root: dict[str, Any]) -> list[SetSummary]:
    return [
        {"id": inv_set["id"], "name": inv_set["name"]} for inv_set in root["sets"].values()
    ]


def get_active_set_id(root: dict[str, Any]) -> SetId:
    return root["activeSetId"]


def set_active_set(root: dict[str, Any], set_id: str) -> dict[str, Any]:
    if set_id not in root["sets"]:
        return root
    staged = dict(root)
    staged["activeSetId"] = create_set_id(set_id)
    return staged


def create_set(root: dict[str, Any], name: str) -> tuple[dict[str, Any], SetId]:
    """Add an empty, default-shaped set and return the new root and its id."""

    set_id = new_set_id()
    while set_id in root["sets"]:  # pragma: no cover - uuid collision
        set_id = new_set_id()
    trimmed = name.strip() if isinstance(name, str) else ""
    staged = _with_sets(root)
    staged["sets"][set_id] = create_inventory_set(set_id, trimmed or DEFAULT_SET_NAME)
    LOGGER.debug(
        "Inventory set created",
        extra={"domain": DOMAIN, "op": "create_set", "set_id": set_id},
    )
    return staged, set_id


def rename_set(root: dict[str, Any], set_id: str, name: str) -> dict[str, Any]:
    current = root["sets"].get(set_id)
    if current is None:
        return root
    trimmed = name.strip() if isinstance(name, str) else ""
    if not trimmed or trimmed == current["name"]:
        return root
    staged = _with_sets(root)
    staged["sets"][set_id] = {**current, "name": trimmed}
    return staged


def delete_set(root: dict[str, Any], set_id: str) -> dict[str, Any]:
    """Remove a set, reassigning the active pointer if needed.

    The last remaining set is never deleted.
    """

    if set_id not in root["sets"] or len(root["sets"]) <= 1:
        return root
    staged = _with_sets(root)
    del staged["sets"][set_id]
    if staged["activeSetId"] == set_id:
        staged["activeSetId"] = next(iter(staged["sets"]))
    LOGGER.debug(
        "Inventory set deleted",
        extra={
            "domain": DOMAIN,
            "op": "delete_set",
            "set_id": set_id,
            "active_set_id": staged["activeSetId"],
        },
    )
    return staged


# -----------------------------
# Flattened view
# -----------------------------


def flatten(root: dict[str, Any]) -> dict[str, Any]:
    """Return the active set's payload merged with schema version and settings."""

    active = root["sets"][root["activeSetId"]]
    data = {key: deepcopy(value) for key, value in active.items() if key not in {"id", "name"}}
    data["schemaVersion"] = root["schemaVersion"]
    data["settings"] = deepcopy(root["settings"])
    return data


def unflatten(root: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
    """Re-slice a flattened view into the active set of ``root``.

    Settings replace the shared settings; every set payload key present in
    ``data`` replaces the active set's slice. Keys outside the set storage
    shape are dropped.
    """

    active_id = root["activeSetId"]
    current = root["sets"][active_id]
    inv_set: dict[str, Any] = {"id": current["id"], "name": current["name"]}
    for key in SET_DATA_KEYS:
        if key in data:
            inv_set[key] = deepcopy(data[key])
        elif key in current:
            inv_set[key] = deepcopy(current[key])

    staged = _with_sets(root)
    staged["sets"][active_id] = inv_set
    if "settings" in data:
        staged["settings"] = deepcopy(data["settings"])
    return staged
