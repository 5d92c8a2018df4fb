"""Typed document shapes and default providers for Stockpile.

Documents are kept as plain JSON-compatible dicts with camelCase keys, since
they are written to the key-value store and exchanged as export files. The
TypedDicts below describe those shapes for type checkers; nothing enforces
them at runtime (see ``validation`` for that).

The ``create_default_*`` functions are the collaborator providers the rest of
the core calls into. They return fresh objects each time to avoid shared
mutation across callers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Final, Literal, NotRequired, TypedDict

from .const import (
    CHILDREN_REQUIREMENT_PERCENTAGE,
    CURRENT_SCHEMA_VERSION,
    DAILY_CALORIES_PER_PERSON,
    DAILY_WATER_PER_PERSON,
    DEFAULT_KIT_ID,
    DEFAULT_SET_ID,
    DEFAULT_SET_NAME,
)
from .ids import (
    AlertId,
    CategoryId,
    ItemId,
    KitId,
    RecommendedItemId,
    SetId,
    TemplateId,
    create_kit_id,
    create_set_id,
)

VALID_LANGUAGES: Final[tuple[str, ...]] = ("en", "fi")
VALID_THEMES: Final[tuple[str, ...]] = (
    "light",
    "dark",
    "auto",
    "midnight",
    "ocean",
    "sunset",
    "forest",
    "lavender",
    "minimal",
)

Language = Literal["en", "fi"]


class AdvancedFeatures(TypedDict):
    calorieTracking: bool
    powerManagement: bool
    waterTracking: bool


class Settings(TypedDict):
    """User settings shared across all inventory sets."""

    language: Language
    theme: str
    highContrast: bool
    advancedFeatures: AdvancedFeatures
    onboardingCompleted: NotRequired[bool]
    dailyCaloriesPerPerson: NotRequired[int]
    dailyWaterPerPerson: NotRequired[int]
    childrenRequirementPercentage: NotRequired[int]


class Household(TypedDict):
    adults: int
    children: int
    pets: int
    supplyDurationDays: int
    useFreezer: bool
    freezerHoldTimeHours: NotRequired[int]


class InventoryItem(TypedDict):
    """Persisted shape for an inventory item.

    ``expirationDate`` and ``neverExpires`` are mutually exclusive: when
    ``neverExpires`` is true the date key is absent.
    """

    id: ItemId
    name: str
    itemType: str
    categoryId: CategoryId
    quantity: float
    unit: str
    neverExpires: bool
    expirationDate: NotRequired[str]
    productTemplateId: NotRequired[TemplateId]
    createdAt: str
    updatedAt: str


class Category(TypedDict):
    id: CategoryId
    name: str
    isCustom: bool


class ProductTemplate(TypedDict):
    id: TemplateId
    category: str
    isBuiltIn: bool
    isCustom: bool


class SetData(TypedDict):
    """Per-set payload, shared by InventorySet and the flattened AppData."""

    household: Household
    items: list[InventoryItem]
    customCategories: list[Category]
    customTemplates: list[ProductTemplate]
    dismissedAlertIds: list[AlertId]
    disabledRecommendedItems: list[RecommendedItemId]
    disabledCategories: list[CategoryId]
    selectedKitId: KitId
    uploadedKits: list[dict[str, Any]]
    customRecommendedItems: NotRequired[dict[str, Any] | None]
    lastModified: str
    lastBackupDate: NotRequired[str]
    backupReminderDismissedUntil: NotRequired[str]


class InventorySet(SetData):
    id: SetId
    name: str


class RootDocument(TypedDict):
    """The only document ever persisted."""

    schemaVersion: str
    settings: Settings
    activeSetId: SetId
    sets: dict[SetId, InventorySet]


class AppData(SetData):
    """Flattened view of the active set plus shared settings."""

    schemaVersion: str
    settings: Settings


class SetSummary(TypedDict):
    id: SetId
    name: str


# Keys of SetData that are list collections defaulting to empty
SET_COLLECTION_KEYS: Final[tuple[str, ...]] = (
    "items",
    "customCategories",
    "customTemplates",
    "dismissedAlertIds",
    "disabledRecommendedItems",
    "disabledCategories",
    "uploadedKits",
)

# Keys that make up a set's payload (everything but id/name)
SET_DATA_KEYS: Final[tuple[str, ...]] = (
    "household",
    *SET_COLLECTION_KEYS,
    "selectedKitId",
    "customRecommendedItems",
    "lastModified",
    "lastBackupDate",
    "backupReminderDismissedUntil",
)


# -----------------------------
# Collaborator providers
# -----------------------------


def create_default_settings() -> Settings:
    return {
        "language": "en",
        "theme": "ocean",
        "highContrast": False,
        "advancedFeatures": {
            "calorieTracking": False,
            "powerManagement": False,
            "waterTracking": False,
        },
        "onboardingCompleted": False,
        "dailyCaloriesPerPerson": DAILY_CALORIES_PER_PERSON,
        "dailyWaterPerPerson": DAILY_WATER_PER_PERSON,
        "childrenRequirementPercentage": CHILDREN_REQUIREMENT_PERCENTAGE,
    }


def create_default_household() -> Household:
    return {
        "adults": 2,
        "children": 0,
        "pets": 0,
        "supplyDurationDays": 7,
        "useFreezer": False,
    }


def create_inventory_set(set_id: str, name: str) -> InventorySet:
    """Create a default-shaped, empty inventory set."""

    return {
        "id": create_set_id(set_id),
        "name": name,
        "household": create_default_household(),
        "items": [],
        "customCategories": [],
        "customTemplates": [],
        "dismissedAlertIds": [],
        "disabledRecommendedItems": [],
        "disabledCategories": [],
        "selectedKitId": create_kit_id(DEFAULT_KIT_ID),
        "uploadedKits": [],
        "lastModified": iso_utc_now(),
    }


def create_default_root() -> RootDocument:
    """Create a new root document holding a single ``Default`` set."""

    default_id = create_set_id(DEFAULT_SET_ID)
    return {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "settings": create_default_settings(),
        "activeSetId": default_id,
        "sets": {default_id: create_inventory_set(default_id, DEFAULT_SET_NAME)},
    }


# -----------------------------
# Utility helpers
# -----------------------------


def iso_utc_now() -> str:
    """Return ISO-8601 UTC timestamp string with 'Z'."""

    now = datetime.now(tz=UTC)
    # No microseconds to keep it compact and stable
    return now.replace(microsecond=0).isoformat().replace("+00:00", "Z")
