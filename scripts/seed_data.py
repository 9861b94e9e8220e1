from __future__ import annotations

import argparse

from services.api.app.db.database import db_session
from services.api.app.db.init_db import init_db
from services.api.app.db.models import BaseItem, ItemOption

# (item id, name, unit price, [(option id, name, unit price), ...])
DEMO_CATALOG: tuple[tuple[str, str, int, list[tuple[str, str, int]]], ...] = (
    (
        "cake-choco",
        "Chocolate Cake",
        35000,
        [
            ("opt-choco-lettering", "Custom lettering", 5000),
            ("opt-choco-candles", "Candle set", 3000),
        ],
    ),
    (
        "cake-berry",
        "Strawberry Shortcake",
        42000,
        [
            ("opt-berry-extra", "Extra strawberries", 6000),
            ("opt-berry-topper", "Figure topper", 8000),
        ],
    ),
    ("cake-plain", "Plain Sponge", 18000, []),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a demo catalog for the Estimate API")
    parser.add_argument(
        "--skip-options",
        action="store_true",
        help="Only seed base items",
    )
    args = parser.parse_args()

    init_db()

    db = db_session()
    try:
        items_added = 0
        options_added = 0
        for item_id, name, price, options in DEMO_CATALOG:
            if db.get(BaseItem, item_id) is None:
                db.add(BaseItem(id=item_id, name=name, unit_price=price))
                items_added += 1

            if args.skip_options:
                continue

            for option_id, option_name, option_price in options:
                if db.get(ItemOption, option_id) is None:
                    db.add(
                        ItemOption(
                            id=option_id,
                            base_item_id=item_id,
                            name=option_name,
                            unit_price=option_price,
                        )
                    )
                    options_added += 1

        db.commit()
        print(f"Seeded items={items_added} options={options_added}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
