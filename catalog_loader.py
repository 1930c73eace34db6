"""
Catalog loader for the Albi Mall product data.

Loads the brand catalog (JSON array or CSV export) with pandas and maps
each row to the Product model.

- JSON: an array of product objects (list fields stay lists)
- CSV: one row per product; list columns (colors, sizes, features, tags)
  are "|"-separated
- Rows without id, name or a valid price are skipped and counted
- Empty/NaN values are dropped, numpy values converted to Python types
"""

from pathlib import Path
from typing import Any, List

import pandas as pd

from core.context import Product
from core.structured_logging import get_logger

# Module-level logger
_logger = get_logger("catalog_loader")


# =============================================================================
# COLUMN NORMALIZATION MAPPINGS
# =============================================================================
# Maps export column names to Product field names; others keep their names

COLUMN_ALIASES = {
    'product_id': 'id',
    'Product ID': 'id',
    'title': 'name',
    'Name': 'name',
    'Brand': 'brand',
    'Category': 'category',
    'Sub Category': 'subcategory',
    'sub_category': 'subcategory',
    'Price': 'price',
    'Color': 'color',
    'Material': 'material',
    'review_count': 'reviews_count',
}

LIST_COLUMNS = ('colors', 'sizes', 'features', 'tags')


def _clean_value(value: Any) -> Any:
    """Drop NaN, convert numpy scalars/arrays to Python types."""
    if isinstance(value, (list, tuple)):
        return [_clean_value(v) for v in value if _clean_value(v) is not None]
    if hasattr(value, 'tolist') and not isinstance(value, str):
        # numpy arrays and scalars
        return _clean_value(value.tolist())
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    return value


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == '.json':
        return pd.read_json(path, orient='records', dtype=False)
    if suffix == '.csv':
        return pd.read_csv(path, dtype={'id': str, 'product_id': str})
    raise ValueError(f"Unsupported catalog format: {path.suffix} (expected .json or .csv)")


def load_catalog(path: str) -> List[Product]:
    """
    Load products from a catalog file.

    Args:
        path: Path to a .json or .csv catalog

    Returns:
        List of Product objects, in file order

    Raises:
        FileNotFoundError: if the file does not exist
        ValueError: if the format is not supported
    """
    catalog_path = Path(path)
    if not catalog_path.exists():
        raise FileNotFoundError(f"Catalog not found: {catalog_path}")

    df = _read_frame(catalog_path)
    df = df.rename(columns=COLUMN_ALIASES)

    products = []
    seen_ids = set()
    skipped = 0
    errors = []

    for idx, row in df.iterrows():
        record = {}
        for col in df.columns:
            val = _clean_value(row[col])
            if val is None or val == '':
                continue
            record[col] = val

        try:
            product = Product.from_dict(record)
        except ValueError as e:
            skipped += 1
            if len(errors) < 10:
                errors.append(f"Row {idx}: {e}")
            continue

        if product.id in seen_ids:
            skipped += 1
            if len(errors) < 10:
                errors.append(f"Row {idx}: duplicate id {product.id}")
            continue

        seen_ids.add(product.id)
        products.append(product)

    _logger.info(
        f"Loaded {len(products)} products from {catalog_path.name}",
        extra={"event": "catalog_loaded", "products_found": len(products)},
    )
    if skipped:
        _logger.warning(
            f"Skipped {skipped} catalog rows: {'; '.join(errors[:5])}",
            extra={"event": "catalog_rows_skipped"},
        )

    return products


def get_catalog_statistics(products: List[Product]) -> dict:
    """
    Get statistics about loaded products.

    Returns dict with:
    - total: Total product count
    - by_category / by_subcategory / by_brand: Counts
    - price_min / price_max / price_mean: Price range (None when empty)
    - in_stock: Count of products marked in stock
    """
    stats = {
        'total': len(products),
        'by_category': {},
        'by_subcategory': {},
        'by_brand': {},
        'price_min': None,
        'price_max': None,
        'price_mean': None,
        'in_stock': 0,
    }
    if not products:
        return stats

    df = pd.DataFrame([
        {
            'category': p.category or 'other',
            'subcategory': p.subcategory or 'other',
            'brand': p.brand or 'unknown',
            'price': p.price,
            'availability': p.availability,
        }
        for p in products
    ])

    stats['by_category'] = {k: int(v) for k, v in df['category'].value_counts().items()}
    stats['by_subcategory'] = {k: int(v) for k, v in df['subcategory'].value_counts().items()}
    stats['by_brand'] = {k: int(v) for k, v in df['brand'].value_counts().items()}
    stats['price_min'] = float(df['price'].min())
    stats['price_max'] = float(df['price'].max())
    stats['price_mean'] = round(float(df['price'].mean()), 2)
    stats['in_stock'] = int((df['availability'] == 'in_stock').sum())

    return stats
