"""
Device family identification for distributor labels.

The flexible pass reads the distributor's free text ("SAMSUNG GALAXY S23 ULTRA
5G 256GB PHTMBLK") and reduces it to a model key ("galaxy s23 ultra") that can
be searched for inside stock descriptions. Storage, color and grade are not
part of the key.

Series rules live in SERIES_RULES and are tried in order. The first rule whose
pattern fires decides, even when it cannot build a key:
    1. A-series: most narrowly anchored token ("a54")
    2. Z-series: "z flip" / "z fold"
    3. Note-series
    4. S-series: generic "s<digits>", checked last so an "s" inside another
       series label cannot claim it
"""

import re
from collections import namedtuple
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from product_text import StorageSpec, extract_storage

ModelIdentity = namedtuple('ModelIdentity', ['model_key', 'storage'])

# ---------------------------------------------------------------------------
# Brand normalization
# ---------------------------------------------------------------------------

BRAND_ALIASES: Dict[str, str] = {
    'samsung electronics': 'samsung', 'samsung electronics co': 'samsung',
    'samsung (old)': 'samsung', 'galaxy': 'samsung',
    'apple inc': 'apple', 'iphone': 'apple', 'ipad': 'apple',
    'google llc': 'google', 'pixel': 'google',
    'one plus': 'oneplus',
    'hmd global': 'nokia',
    'motorola mobility': 'motorola', 'moto': 'motorola',
}

_KNOWN_BRANDS = {
    'samsung', 'apple', 'google', 'oppo', 'xiaomi', 'huawei', 'oneplus', 'nokia',
    'motorola', 'sony', 'vivo', 'realme', 'honor', 'nothing', 'alcatel', 'zte',
}

# The series rules below only describe Samsung Galaxy naming
FLEXIBLE_MATCH_BRANDS = {'samsung'}

# Distributor rows that are never phones/tablets
DISTRIBUTOR_ACCESSORY_KEYWORDS = ['case', 'cover', 'protector', 'stylus', 'watch', 'buds', 'book']
# Stock descriptions that are accessories sold alongside devices
STOCK_ACCESSORY_KEYWORDS = ['case', 'cover', 'protector', 'pen', 'stylus']


def _keyword_pattern(keywords: List[str]) -> Pattern:
    # Leading boundary only: distributors glue suffixes on ('Watch6', 'Buds2', 'Book3')
    return re.compile(r'\b(?:' + '|'.join(re.escape(k) for k in keywords) + r')', re.IGNORECASE)


_DISTRIBUTOR_ACCESSORY = _keyword_pattern(DISTRIBUTOR_ACCESSORY_KEYWORDS)
_STOCK_ACCESSORY = _keyword_pattern(STOCK_ACCESSORY_KEYWORDS)


def infer_brand(label: str) -> str:
    """
    Brand named anywhere in a label, or '' when none is recognised.

    Examples:
        'SAMSUNG GALAXY A54 5G SM-A546 128GB' -> 'samsung'
        'Galaxy S23 (256GB) [Grade A]'        -> 'samsung'
        'iPhone 13 Pro 256GB - Pristine'      -> 'apple'
        'Unknown Device 128GB'                -> ''
    """
    if not isinstance(label, str) or not label.strip():
        return ''
    text = ' '.join(label.lower().split())
    for alias, canonical in BRAND_ALIASES.items():
        if re.search(rf'\b{re.escape(alias)}\b', text):
            return canonical
    for brand in _KNOWN_BRANDS:
        if re.search(rf'\b{re.escape(brand)}\b', text):
            return brand
    return ''


def is_flexible_brand(label: str) -> bool:
    """Whether the label names a brand the series rules understand (explicitly, not via 'galaxy')."""
    if not isinstance(label, str):
        return False
    text = label.lower()
    return any(brand in text for brand in FLEXIBLE_MATCH_BRANDS)


def is_accessory_label(label: str) -> bool:
    """Distributor rows for cases, wearables and laptops: 'Galaxy Buds Pro Case' -> True."""
    return isinstance(label, str) and bool(_DISTRIBUTOR_ACCESSORY.search(label))


def is_accessory_description(label: str) -> bool:
    """Stock descriptions for accessories: 'Galaxy S23 Clear Cover' -> True."""
    return isinstance(label, str) and bool(_STOCK_ACCESSORY.search(label))


# ---------------------------------------------------------------------------
# Series rules
# ---------------------------------------------------------------------------

def _five_g_suffix(text: str) -> str:
    return ' 5g' if '5g' in text else ''


def _a_series(match, text: str) -> Optional[str]:
    version = ' v2' if 'v2' in text else ''
    return f"galaxy a{match.group(1)}{version}{_five_g_suffix(text)}"


def _z_series(match, text: str) -> Optional[str]:
    type_match = re.search(r'z\s*(flip|fold)\s*(\d+)', text)
    if not type_match:
        return None
    fold_type, number = type_match.groups()
    return f"galaxy z {fold_type} {number}{_five_g_suffix(text)}"


def _note_series(match, text: str) -> Optional[str]:
    return 'galaxy note 20 ultra' if 'ultra' in text else 'galaxy note 20'


def _s_series(match, text: str) -> Optional[str]:
    base = f"galaxy s{match.group(1)}"
    if 'ultra' in text:
        return f"{base} ultra"
    if 'plus' in text or '+' in text:
        return f"{base} plus"
    if re.search(r'(?:\b|\d)fe\b', text):
        return f"{base} fe"
    return base


# (name, pattern, key builder). Order is priority.
SERIES_RULES: List[Tuple[str, Pattern, Callable[..., Optional[str]]]] = [
    ('a-series', re.compile(r'(?:^|\s)a(\d+[a-z]*)(?=\s|$)'), _a_series),
    ('z-series', re.compile(r'z\s*(?:flip|fold)'), _z_series),
    ('note-series', re.compile(r'note\s*20'), _note_series),
    ('s-series', re.compile(r'(?:^|\s)s(\d+)'), _s_series),
]


def prenormalize_label(label: str) -> str:
    """Lowercase, collapse whitespace, drop the first 'lte'/'4g' token."""
    if not isinstance(label, str):
        return ''
    text = ' '.join(label.lower().split())
    text = re.sub(r'\b(?:lte|4g)\b', '', text, count=1)
    return ' '.join(text.split())


def identify_model(label: str) -> ModelIdentity:
    """
    Derive (model_key, storage) from a free-text label.

    Examples:
        'SAMSUNG GALAXY A54 5G SM-A546 128GB BLACK' -> ('galaxy a54 5g', 128GB)
        'Samsung Galaxy Z Flip5 512GB'             -> ('galaxy z flip 5', 512GB)
        'SAMSUNG NOTE 20 ULTRA 256GB LTE'          -> ('galaxy note 20 ultra', 256GB)
        'Samsung Galaxy S23+ 256GB'                -> ('galaxy s23 plus', 256GB)
        'Samsung Galaxy Tab Active'                -> (None, None)
    """
    if not isinstance(label, str):
        return ModelIdentity(None, None)
    return _identify_model(label)


@lru_cache(maxsize=50000)
def _identify_model(label: str) -> ModelIdentity:
    text = prenormalize_label(label)
    if not text:
        return ModelIdentity(None, None)

    storage: Optional[StorageSpec] = extract_storage(text)

    for _, pattern, build_key in SERIES_RULES:
        match = pattern.search(text)
        if match:
            return ModelIdentity(build_key(match, text), storage)

    return ModelIdentity(None, storage)
