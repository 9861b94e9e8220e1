from __future__ import annotations

import pytest
from services.api.app.services.catalog_memory import InMemoryCatalog


@pytest.fixture()
def catalog() -> InMemoryCatalog:
    cat = InMemoryCatalog()
    cat.add_item("cake-choco", "Chocolate Cake", 35000)
    cat.add_option("opt-a", "cake-choco", "Custom lettering", 5000)
    cat.add_option("opt-b", "cake-choco", "Candle set", 3000)

    cat.add_item("cake-berry", "Strawberry Shortcake", 42000)
    cat.add_option("opt-berry", "cake-berry", "Extra strawberries", 6000)
    return cat
