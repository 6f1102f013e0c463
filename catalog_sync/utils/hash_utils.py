"""
Hash utilities — deterministic hashing of product content.

Content hashes are written on every sync outcome so operators can tell
which version of a product was pushed without storing the product.
Version: 1.0.0
"""

import hashlib
import json
from typing import Any, Dict

from catalog_sync.core.constants.sync import COMPARED_FIELDS


def compute_content_hash(product: Dict[str, Any]) -> str:
    """
    Compute a deterministic hash of a product's compared fields.

    Args:
        product: Normalized product as a dict

    Returns:
        SHA-256 hash string (first 16 chars for storage efficiency)
    """
    relevant_data = {field: product.get(field) for field in COMPARED_FIELDS}

    json_str = json.dumps(relevant_data, sort_keys=True, default=str)
    hash_obj = hashlib.sha256(json_str.encode())

    return hash_obj.hexdigest()[:16]
