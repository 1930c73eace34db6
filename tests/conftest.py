"""
Shared fixtures: a small catalog and offline assistant settings.
"""

import pytest

from config.settings import Settings
from core.context import Product


def _product(pid, name, price, category, subcategory, color, **fields):
    return Product.from_dict({
        "id": pid,
        "name": name,
        "price": price,
        "brand": "Michael Kors",
        "category": category,
        "subcategory": subcategory,
        "color": color,
        **fields,
    })


@pytest.fixture
def catalog():
    """Three totes ($80/$150/$220), a red satchel, a red wallet and sneakers."""
    return [
        _product("tote-80", "Logo Tote", 80, "Bags", "Tote", "Brown", material="Canvas"),
        _product("tote-150", "Leather Tote", 150, "Bags", "Tote", "Black", material="Leather"),
        _product("tote-220", "Large Tote", 220, "Bags", "Tote", "Beige", material="Leather"),
        _product("red-satchel-90", "Hamilton Satchel", 90, "Bags", "Satchel", "Red", material="Leather"),
        _product("red-wallet-60", "Jet Set Wallet", 60, "Wallets", "Wallet", "Red"),
        _product("sneaker-110", "Keaton Sneaker", 110, "Shoes", "Sneakers", "White"),
    ]


@pytest.fixture
def offline_settings():
    """Settings with no remote providers and no background sweeper."""
    return Settings(
        catalog_path="",
        llm_api_key="",
        trieve_api_key="",
        trieve_dataset_id="",
        cache_sweep_interval=0,
        debug=False,
    )
