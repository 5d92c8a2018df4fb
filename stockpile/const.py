"""Constants for the Stockpile persistence core.

Defines the logging domain, storage key, schema versions and the defaults
handed out by the collaborator providers.
"""

from typing import Final

# Logging domain used across all modules
DOMAIN: Final[str] = "stockpile"

# Public application version recorded in export files
APP_VERSION: Final[str] = "1.4.0"

# Key under which the root document is persisted
STORAGE_KEY: Final[str] = "stockpile.root"

# Current schema version of persisted and exported documents
CURRENT_SCHEMA_VERSION: Final[str] = "1.2.0"

# Documents older than this cannot be migrated
MIN_SUPPORTED_VERSION: Final[str] = "1.0.0"

# Version assumed for documents that carry no version at all
LEGACY_DEFAULT_VERSION: Final[str] = "1.0.0"

DEFAULT_SET_ID: Final[str] = "default"
DEFAULT_SET_NAME: Final[str] = "Default"

DEFAULT_KIT_ID: Final[str] = "72tuntia-standard"

# Item type used when an item is not backed by a template
CUSTOM_ITEM_TYPE: Final[str] = "custom"

# Built-in categories are always available in addition to custom ones
STANDARD_CATEGORY_COUNT: Final[int] = 9

DAILY_CALORIES_PER_PERSON: Final[int] = 2000
DAILY_WATER_PER_PERSON: Final[int] = 3
CHILDREN_REQUIREMENT_PERCENTAGE: Final[int] = 75

# Typical per-origin key-value quota (~5 MB) and warning threshold
STORAGE_LIMIT_BYTES: Final[int] = 5 * 1024 * 1024
STORAGE_WARNING_RATIO: Final[float] = 0.8
