"""Branded identifiers for Stockpile documents.

Each identifier kind is a distinct ``str`` subclass so values of different
kinds cannot be confused, while still serializing as plain JSON strings.
Values are only created through the ``create_*`` factories, which reject
non-string and empty input. Re-stamping an already stamped value returns an
equal value, which keeps normalization idempotent.
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from typing import TypeVar

from .const import DOMAIN
from .exceptions import ValidationError

_LOGGER = logging.getLogger(__name__)


class BrandedId(str):
    """Base class for nominal identifier types."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"


class ItemId(BrandedId):
    __slots__ = ()


class CategoryId(BrandedId):
    __slots__ = ()


class TemplateId(BrandedId):
    __slots__ = ()


class AlertId(BrandedId):
    __slots__ = ()


class RecommendedItemId(BrandedId):
    __slots__ = ()


class SetId(BrandedId):
    __slots__ = ()


class KitId(BrandedId):
    __slots__ = ()


_IdT = TypeVar("_IdT", bound=BrandedId)


def _stamp(kind: type[_IdT], value: object, field_name: str) -> _IdT:
    if isinstance(value, kind):
        return value
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field_name} must be a non-empty string")
    return kind(value)


def create_item_id(value: object, *, field_name: str = "id") -> ItemId:
    return _stamp(ItemId, value, field_name)


def create_category_id(value: object, *, field_name: str = "categoryId") -> CategoryId:
    return _stamp(CategoryId, value, field_name)


def create_template_id(value: object, *, field_name: str = "templateId") -> TemplateId:
    return _stamp(TemplateId, value, field_name)


def create_alert_id(value: object, *, field_name: str = "alertId") -> AlertId:
    return _stamp(AlertId, value, field_name)


def create_recommended_item_id(
    value: object, *, field_name: str = "recommendedItemId"
) -> RecommendedItemId:
    return _stamp(RecommendedItemId, value, field_name)


def create_set_id(value: object, *, field_name: str = "setId") -> SetId:
    return _stamp(SetId, value, field_name)


def create_kit_id(value: object, *, field_name: str = "selectedKitId") -> KitId:
    return _stamp(KitId, value, field_name)


def is_stamped(value: object, kind: type[BrandedId]) -> bool:
    """Return True when ``value`` went through the factory for ``kind``."""

    return isinstance(value, kind) and len(value) > 0


def new_set_id() -> SetId:
    """Generate a fresh inventory set id.

    Uses a random UUID v4 when the OS provides a randomness source and falls
    back to a millisecond timestamp plus a pseudo-random suffix otherwise.
    """

    try:
        return SetId(str(uuid.uuid4()))
    except NotImplementedError:
        _LOGGER.debug(
            "No OS randomness source, using timestamp id",
            extra={"domain": DOMAIN, "op": "new_set_id"},
        )
    millis = int(time.time() * 1000)
    suffix = random.getrandbits(32)  # noqa: S311
    return SetId(f"set-{millis:x}-{suffix:08x}")
