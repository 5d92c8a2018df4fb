"""Session repository for Stockpile.

Owns the in-memory root document for one session and is the only surface the
UI layers call into. ``load`` runs the full pipeline

    Root Store -> version gate -> normalize -> migrate (if stale) -> validate

and reports the outcome as a ``LoadResult`` instead of raising. Every mutating
operation replaces the in-memory document first and then persists it; a failed
write is logged and reported through the return value, and the in-memory
document stays authoritative for the rest of the session.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from . import inventory_sets, migrations, transfer
from .const import DOMAIN
from .exceptions import MigrationError, StorageError, ValidationError
from .ids import SetId
from .models import SetSummary, create_default_root, iso_utc_now
from .normalize import document_version, normalize_app_data, normalize_root
from .storage import FileKeyValueStore, MemoryKeyValueStore, RootStore
from .validation import (
    ValidationIssue,
    is_valid_app_data,
    validate_app_data_values,
    validate_root,
)

LOGGER = logging.getLogger(__name__)


class LoadFailure(StrEnum):
    UNREADABLE = "unreadable"
    UNSUPPORTED_VERSION = "unsupported_version"
    MIGRATION_FAILED = "migration_failed"
    INVALID = "invalid"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of ``Repository.load``.

    ``document`` is the validated root document on success and None on
    failure, in which case ``reason`` says why and ``errors`` lists the
    individual problems.
    """

    document: dict[str, Any] | None
    errors: list[ValidationIssue] = field(default_factory=list)
    reason: LoadFailure | None = None
    migrated: bool = False
    created: bool = False

    @property
    def ok(self) -> bool:
        return self.document is not None

    @property
    def app_data(self) -> dict[str, Any] | None:
        if self.document is None:
            return None
        return inventory_sets.flatten(self.document)


def _failure(reason: LoadFailure, field_name: str, message: str, value: Any = None) -> LoadResult:
    return LoadResult(
        document=None,
        errors=[ValidationIssue(field=field_name, message=message, value=value)],
        reason=reason,
    )


class Repository:
    """Root document owner providing the set manager and import operations."""

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def __init__(self, store: RootStore) -> None:
        self._store = store
        self._root: dict[str, Any] | None = None
        self._last_load: LoadResult | None = None

    @classmethod
    def in_memory(cls) -> Repository:
        return cls(RootStore(MemoryKeyValueStore()))

    @classmethod
    def from_directory(cls, path: str | os.PathLike[str], origin: str = "default") -> Repository:
        return cls(RootStore(FileKeyValueStore(path, origin)))

    @property
    def store(self) -> RootStore:
        return self._store

    @property
    def root(self) -> dict[str, Any] | None:
        """The in-memory root document, or None before a successful load."""

        return self._root

    @property
    def last_load(self) -> LoadResult | None:
        return self._last_load

    def load(self) -> LoadResult:
        """Load, migrate and validate the stored document. Never raises."""

        try:
            result = self._load()
        except Exception as exc:  # pragma: no cover - defensive
            LOGGER.error(
                "Unexpected failure while loading document",
                extra={"domain": DOMAIN, "op": "load"},
                exc_info=True,
            )
            result = _failure(LoadFailure.UNREADABLE, "", str(exc))
        if result.document is not None:
            self._root = result.document
        self._last_load = result
        return result

    def _load(self) -> LoadResult:
        raw = self._store.load()
        if raw is None:
            if self._store.exists():
                # Bytes are present but unreadable; keep them for recovery
                LOGGER.warning(
                    "Stored document is unreadable; not overwriting it",
                    extra={"domain": DOMAIN, "op": "load", "storage_key": self._store.key},
                )
                return _failure(
                    LoadFailure.UNREADABLE, "", "stored document could not be decoded"
                )
            root = create_default_root()
            self._store.save(root)
            LOGGER.info(
                "Created new document",
                extra={"domain": DOMAIN, "op": "bootstrap", "storage_key": self._store.key},
            )
            return LoadResult(document=root, created=True)

        version = document_version(raw)
        if not migrations.is_version_supported(version):
            LOGGER.error(
                "Stored document has unsupported schema version %s",
                version,
                extra={"domain": DOMAIN, "op": "load_version", "schema_version": str(version)},
            )
            return _failure(
                LoadFailure.UNSUPPORTED_VERSION,
                "schemaVersion",
                f"Schema version {version} is not supported",
                version,
            )

        root = normalize_root(raw)
        migrated = False
        if migrations.needs_migration(root):
            try:
                root = migrations.migrate(root)
            except MigrationError as exc:
                LOGGER.error(
                    "Failed to migrate stored document",
                    extra={
                        "domain": DOMAIN,
                        "op": "load_migrate",
                        "from_version": exc.from_version,
                        "to_version": exc.to_version,
                    },
                    exc_info=True,
                )
                return _failure(
                    LoadFailure.MIGRATION_FAILED, "schemaVersion", str(exc), version
                )
            migrated = True

        validation = validate_root(root)
        if not validation.is_valid:
            LOGGER.warning(
                "Stored document failed validation",
                extra={
                    "domain": DOMAIN,
                    "op": "load_validate",
                    "error_count": len(validation.errors),
                },
            )
            return LoadResult(
                document=None, errors=list(validation.errors), reason=LoadFailure.INVALID
            )

        if migrated:
            self._store.save(root)
        LOGGER.debug(
            "Document loaded",
            extra={
                "domain": DOMAIN,
                "op": "load",
                "schema_version": root["schemaVersion"],
                "set_count": len(root["sets"]),
                "migrated": migrated,
            },
        )
        return LoadResult(document=root, migrated=migrated)

    # -----------------------------
    # Internal helpers
    # -----------------------------

    def _current(self) -> dict[str, Any] | None:
        if self._root is None and self._last_load is None:
            self.load()
        return self._root

    def _require(self) -> dict[str, Any]:
        root = self._current()
        if root is None:
            raise StorageError("No valid document is loaded")
        return root

    def _commit(self, root: dict[str, Any], *, op: str) -> bool:
        self._root = root
        saved = self._store.save(root)
        if not saved:
            LOGGER.warning(
                "Change kept in memory only; persisting failed",
                extra={"domain": DOMAIN, "op": op},
            )
        return saved

    def _reject_invalid(self, issues: list[ValidationIssue], *, op: str) -> None:
        if not issues:
            return
        LOGGER.warning(
            "Import rejected by validation",
            extra={"domain": DOMAIN, "op": op, "error_count": len(issues)},
        )
        details = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        raise ValidationError(f"Imported data is invalid: {details}")

    def _commit_import(self, root: dict[str, Any], *, op: str) -> None:
        self._reject_invalid(validate_root(root).errors, op=op)
        self._commit(root, op=op)

    # -----------------------------
    # Flattened view
    # -----------------------------

    def get_app_data(self) -> dict[str, Any] | None:
        root = self._current()
        return None if root is None else inventory_sets.flatten(root)

    def save_app_data(self, data: dict[str, Any]) -> bool:
        """Normalize ``data`` and store it as the active set and shared settings."""

        root = self._require()
        normalized = normalize_app_data(data)
        return self._commit(inventory_sets.unflatten(root, normalized), op="save_app_data")

    def record_backup(self) -> bool:
        """Stamp ``lastBackupDate`` on the active set."""

        root = self._require()
        data = inventory_sets.flatten(root)
        data["lastBackupDate"] = iso_utc_now()
        return self._commit(inventory_sets.unflatten(root, data), op="record_backup")

    # -----------------------------
    # Inventory sets
    # -----------------------------

    def list_sets(self) -> list[SetSummary]:
        root = self._current()
        return [] if root is None else inventory_sets.list_sets(root)

    def get_active_set_id(self) -> SetId | None:
        root = self._current()
        return None if root is None else inventory_sets.get_active_set_id(root)

    def set_active_set(self, set_id: str) -> None:
        root = self._require()
        updated = inventory_sets.set_active_set(root, set_id)
        if updated is not root:
            self._commit(updated, op="set_active_set")

    def create_set(self, name: str) -> SetId:
        root = self._require()
        updated, set_id = inventory_sets.create_set(root, name)
        self._commit(updated, op="create_set")
        return set_id

    def rename_set(self, set_id: str, name: str) -> None:
        root = self._require()
        updated = inventory_sets.rename_set(root, set_id, name)
        if updated is not root:
            self._commit(updated, op="rename_set")

    def delete_set(self, set_id: str) -> None:
        root = self._require()
        updated = inventory_sets.delete_set(root, set_id)
        if updated is not root:
            self._commit(updated, op="delete_set")

    # -----------------------------
    # Export / import
    # -----------------------------

    def export_full(self) -> str:
        return transfer.export_to_json(inventory_sets.flatten(self._require()))

    def export_sections(self, sections: Iterable[str]) -> str:
        return transfer.export_to_json_selective(
            inventory_sets.flatten(self._require()), sections
        )

    def export_sets(self, selection: dict[str, Any]) -> str:
        return transfer.export_multi_inventory(self._require(), selection)

    def import_full(self, text: str) -> dict[str, Any]:
        """Replace the active set and settings with a full export file.

        Raises ParseError, UnsupportedVersionError or ValidationError; the
        stored document is untouched when it does.
        """

        root = self._require()
        data = transfer.import_from_json(text)
        if not is_valid_app_data(data):
            raise ValidationError("Imported data does not have the expected structure")
        self._reject_invalid(validate_app_data_values(data).errors, op="import_full")
        self._commit_import(inventory_sets.unflatten(root, data), op="import_full")
        return inventory_sets.flatten(self._root)

    def import_sections(self, text: str, sections: Iterable[str]) -> dict[str, Any]:
        """Merge the chosen sections of an export file into the active set."""

        root = self._require()
        imported = transfer.parse_import_json(text)
        merged = transfer.merge_import_data(inventory_sets.flatten(root), imported, sections)
        self._reject_invalid(validate_app_data_values(merged).errors, op="import_sections")
        self._commit_import(inventory_sets.unflatten(root, merged), op="import_sections")
        return inventory_sets.flatten(self._root)

    def import_sets(self, text: str, selection: dict[str, Any]) -> list[SetId]:
        """Add the selected entries of a multi-set file as new sets."""

        root = self._require()
        import_data = transfer.parse_multi_inventory_import(text)
        updated, created = transfer.import_multi_inventory(root, import_data, selection)
        if created or updated["settings"] != root["settings"]:
            self._commit_import(updated, op="import_sets")
        return created
