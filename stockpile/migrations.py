"""Schema migrations for Stockpile documents.

Forward-only migration steps. Each step receives and returns an entire
document dict and must be a pure function of its input. Steps work on both
root documents (where they visit every inventory set) and flattened
single-set payloads coming from import files.

The chain is matched by exact version equality: a step runs only when its
``from_version`` equals the document's version after the previous steps.
Adding a new schema version means adding one step and bumping
``CURRENT_SCHEMA_VERSION``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator, Sequence
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Final

from .const import CURRENT_SCHEMA_VERSION, DOMAIN, LEGACY_DEFAULT_VERSION, MIN_SUPPORTED_VERSION
from .exceptions import InvalidVersionFormatError, MigrationStepError, UnsupportedVersionError
from .models import iso_utc_now

_LOGGER = logging.getLogger(__name__)

VERSION_RE: Final = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")

MigrationFn = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class Migration:
    """A registered transformation from one schema version to the next."""

    from_version: str
    to_version: str
    migrate: MigrationFn


# -----------------------------
# Version helpers
# -----------------------------


def parse_version(version: Any) -> tuple[int, int, int]:
    """Parse a strict ``major.minor.patch`` string."""

    match = VERSION_RE.match(version) if isinstance(version, str) else None
    if match is None:
        raise InvalidVersionFormatError(f"Invalid version format: {version}. Expected x.y.z")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def compare_versions(a: str, b: str) -> int:
    """Return -1 if ``a < b``, 0 if equal, 1 if ``a > b``."""

    parsed_a = parse_version(a)
    parsed_b = parse_version(b)
    if parsed_a == parsed_b:
        return 0
    return -1 if parsed_a < parsed_b else 1


def is_version_supported(version: Any) -> bool:
    """Return True iff ``version`` parses and is at least the minimum supported."""

    try:
        return compare_versions(version, MIN_SUPPORTED_VERSION) >= 0
    except InvalidVersionFormatError:
        return False


def document_schema_version(doc: dict[str, Any]) -> Any:
    return doc.get("schemaVersion") or LEGACY_DEFAULT_VERSION


def needs_migration(doc: dict[str, Any], *, target_version: str = CURRENT_SCHEMA_VERSION) -> bool:
    return compare_versions(document_schema_version(doc), target_version) < 0


def ensure_supported(version: Any) -> None:
    """Raise UnsupportedVersionError unless ``version`` can be migrated."""

    if not is_version_supported(version):
        raise UnsupportedVersionError(
            f"Schema version {version} is not supported. "
            f"Minimum supported version is {MIN_SUPPORTED_VERSION}.",
            from_version=str(version),
            to_version=CURRENT_SCHEMA_VERSION,
        )


# -----------------------------
# Driver
# -----------------------------


def _iter_set_payloads(doc: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield the per-set payloads of a root document, or the document itself."""

    sets = doc.get("sets")
    if isinstance(sets, dict):
        for payload in sets.values():
            if isinstance(payload, dict):
                yield payload
    else:
        yield doc


def find_applicable_migrations(
    from_version: str, migrations: Sequence[Migration] | None = None
) -> list[Migration]:
    chain = MIGRATIONS if migrations is None else migrations
    applicable: list[Migration] = []
    version = from_version
    for step in chain:
        if compare_versions(version, step.from_version) == 0:
            applicable.append(step)
            version = step.to_version
    return applicable


def get_migration_path(from_version: str) -> list[tuple[str, str]]:
    """Return the ``(from, to)`` pairs that ``migrate`` would apply."""

    steps = find_applicable_migrations(from_version)
    return [(step.from_version, step.to_version) for step in steps]


def _apply_step(doc: dict[str, Any], step: Migration) -> dict[str, Any]:
    try:
        migrated = step.migrate(doc)
    except Exception as exc:
        _LOGGER.error(
            "Migration step failed",
            extra={
                "domain": DOMAIN,
                "op": "migrate_step",
                "from_version": step.from_version,
                "to_version": step.to_version,
            },
            exc_info=True,
        )
        raise MigrationStepError(
            f"Migration from {step.from_version} to {step.to_version} failed: {exc}",
            from_version=step.from_version,
            to_version=step.to_version,
        ) from exc
    migrated["schemaVersion"] = step.to_version
    return migrated


def migrate(
    doc: dict[str, Any],
    *,
    migrations: Sequence[Migration] | None = None,
    target_version: str = CURRENT_SCHEMA_VERSION,
) -> dict[str, Any]:
    """Bring ``doc`` to ``target_version``.

    Raises UnsupportedVersionError for versions below the minimum and
    MigrationStepError when a step fails. A current document is returned
    unchanged; otherwise the result is a new dict stamped with the target
    version and a fresh ``lastModified``.
    """

    from_version = document_schema_version(doc)
    ensure_supported(from_version)

    if not needs_migration(doc, target_version=target_version):
        return doc

    steps = find_applicable_migrations(from_version, migrations)
    if not steps:
        # Supported but not on the chain: relabel without transforming
        _LOGGER.warning(
            "No migration step matches schema version %s; relabelling to %s",
            from_version,
            target_version,
            extra={
                "domain": DOMAIN,
                "op": "migrate_gap",
                "from_version": from_version,
                "to_version": target_version,
            },
        )

    data: dict[str, Any] = deepcopy(doc)
    for step in steps:
        data = _apply_step(data, step)

    data["schemaVersion"] = target_version
    now = iso_utc_now()
    for payload in _iter_set_payloads(data):
        payload["lastModified"] = now
    _LOGGER.debug(
        "Document migrated",
        extra={
            "domain": DOMAIN,
            "op": "migrate",
            "from_version": from_version,
            "to_version": target_version,
            "steps": len(steps),
        },
    )
    return data


# -----------------------------
# Steps
# -----------------------------


def migrate_1_0_0_to_1_1_0(doc: dict[str, Any]) -> dict[str, Any]:
    """Replace the legacy ``household.hasPets`` flag with a ``pets`` count."""

    data = deepcopy(doc)
    for payload in _iter_set_payloads(data):
        household = payload.get("household")
        if not isinstance(household, dict):
            continue
        if "hasPets" in household:
            has_pets = household.pop("hasPets")
            household["pets"] = max(int(household.get("pets") or 0), 1) if has_pets else 0
        household.setdefault("pets", 0)
    return data


def migrate_1_1_0_to_1_2_0(doc: dict[str, Any]) -> dict[str, Any]:
    """Give every item an explicit ``neverExpires`` flag.

    Also renames ``household.supplyDays`` and defaults ``disabledCategories``.
    """

    data = deepcopy(doc)
    for payload in _iter_set_payloads(data):
        household = payload.get("household")
        if isinstance(household, dict) and "supplyDays" in household:
            household["supplyDurationDays"] = household.pop("supplyDays")
        for item in payload.get("items") or []:
            if not isinstance(item, dict):
                continue
            if "expirationDate" in item and item["expirationDate"] is None:
                del item["expirationDate"]
                item["neverExpires"] = True
            item.setdefault("neverExpires", False)
        payload.setdefault("disabledCategories", [])
    return data


MIGRATIONS: Final[tuple[Migration, ...]] = (
    Migration("1.0.0", "1.1.0", migrate_1_0_0_to_1_1_0),
    Migration("1.1.0", "1.2.0", migrate_1_1_0_to_1_2_0),
)
