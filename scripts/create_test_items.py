#!/usr/bin/env python3
"""Seed a file-backed Stockpile store with random supply items.

This is a dev/test utility script - security linting rules are relaxed:
- S311: Uses standard random (not crypto) - fine for test data generation
- PLR2004: Magic numbers are acceptable in test scripts

Environment:
- STOCKPILE_DATA_DIR: root directory of the store (default ``./stockpile-data``)
- STOCKPILE_ORIGIN: origin directory inside the root (default ``default``)
- SET_NAME: add the items to a new inventory set with this name instead of
  the active one
- START_INDEX / ITEM_COUNT: numbering and number of items to create
"""
# ruff: noqa: S311, PLR2004

import os
import random
import sys
import uuid
from datetime import datetime, timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stockpile.models import iso_utc_now  # noqa: E402
from stockpile.repository import Repository  # noqa: E402
from stockpile.storage import storage_usage_mb  # noqa: E402

# Sample data for random generation: (name, template id, category id, unit)
SUPPLIES = [
    ("Bottled water", "bottled-water", "water-beverages", "liters"),
    ("Long-life milk", "long-life-milk", "water-beverages", "liters"),
    ("Canned soup", "canned-soup", "food", "cans"),
    ("Canned fish", "canned-fish", "food", "cans"),
    ("Rice", "rice", "food", "kilograms"),
    ("Pasta", "pasta", "food", "kilograms"),
    ("Crispbread", "crispbread", "food", "packages"),
    ("Oat flakes", "oat-flakes", "food", "kilograms"),
    ("Candles", "candles", "light-power", "pieces"),
    ("Flashlight", "flashlight", "light-power", "pieces"),
    ("AA batteries", "aa-batteries", "light-power", "pieces"),
    ("Power bank", "power-bank", "communication-info", "pieces"),
    ("Battery radio", "battery-radio", "communication-info", "pieces"),
    ("First aid kit", "first-aid-kit", "medical-health", "pieces"),
    ("Painkillers", "painkillers", "medical-health", "packages"),
    ("Wet wipes", "wet-wipes", "hygiene-sanitation", "packages"),
    ("Toilet paper", "toilet-paper", "hygiene-sanitation", "rolls"),
    ("Cash", "cash", "cash-documents", "euros"),
    ("Camping stove", "camping-stove", "cooking-heat", "pieces"),
    ("Gas canister", "gas-canister", "cooking-heat", "pieces"),
    ("Multitool", "multitool", "tools-supplies", "pieces"),
    ("Duct tape", "duct-tape", "tools-supplies", "rolls"),
]

NOTES = [
    "Stored in the basement",
    "Check the date every autumn",
    "Rotate into daily use",
    "Bought on sale",
    "Spare for the car",
]

# Items without a shelf life
NON_PERISHABLE = {
    "flashlight",
    "power-bank",
    "battery-radio",
    "cash",
    "camping-stove",
    "multitool",
}


def generate_random_item(index):
    """Generate a random inventory item with all fields populated."""
    name, template_id, category_id, unit = random.choice(SUPPLIES)
    now = iso_utc_now()

    item = {
        "id": str(uuid.uuid4()),
        "name": f"{name} #{index + 1}",
        "itemType": template_id,
        "productTemplateId": template_id,
        "categoryId": category_id,
        "quantity": random.randint(1, 24),
        "unit": unit,
        "neverExpires": template_id in NON_PERISHABLE,
        "createdAt": now,
        "updatedAt": now,
    }
    if not item["neverExpires"]:
        days_from_now = random.randint(-30, 720)
        expires = datetime.now() + timedelta(days=days_from_now)
        item["expirationDate"] = expires.strftime("%Y-%m-%d")
    if random.random() < 0.3:
        item["notes"] = random.choice(NOTES)
    # Some items use the legacy "never expires" marker
    if item["neverExpires"] and random.random() < 0.3:
        item["neverExpires"] = False
        item["expirationDate"] = None
    return item


def main():
    """Run the test item creation script."""
    data_dir = os.environ.get("STOCKPILE_DATA_DIR", "stockpile-data")
    origin = os.environ.get("STOCKPILE_ORIGIN", "default")
    set_name = os.environ.get("SET_NAME")

    repo = Repository.from_directory(data_dir, origin)
    result = repo.load()
    if not result.ok:
        print(f"Error: could not load store ({result.reason})")
        for issue in result.errors:
            print(f"  {issue.field}: {issue.message}")
        sys.exit(1)

    if set_name:
        set_id = repo.create_set(set_name)
        repo.set_active_set(set_id)
        print(f"Created inventory set {set_name!r} ({set_id})")

    print(f"Seeding store at {repo.store.kv.directory}")
    print("-" * 60)

    start_index = int(os.environ.get("START_INDEX", "0"))
    count = int(os.environ.get("ITEM_COUNT", "30"))

    data = repo.get_app_data()
    for i in range(start_index, start_index + count):
        item = generate_random_item(i)
        expires = item.get("expirationDate") or "never"
        print(f"[{i + 1:2}/{start_index + count}] {item['name']}")
        print(f"         Category: {item['categoryId']}, Qty: {item['quantity']} {item['unit']}")
        print(f"         Expires: {expires}")
        data["items"].append(item)

    if repo.save_app_data(data):
        print("-" * 60)
        print(f"Done! Items in active set: {len(repo.get_app_data()['items'])}")
        print(f"Storage used: {storage_usage_mb(repo.store.kv)} MB")
    else:
        print("Error: failed to write the store")
        sys.exit(1)


if __name__ == "__main__":
    main()
