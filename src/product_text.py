"""
Label normalization and attribute extraction for stock reconciliation.

Both spreadsheets describe the same devices with different conventions:
    - Stock (source A) names look like "Galaxy A54 5G (128GB) [Brand New]":
      storage in parentheses, condition grade in square brackets
    - Distributor (source B) names look like "SAMSUNG GALAXY A54 5G SM-A546 128GB BLACK":
      bare storage, model code, abbreviated color, no grade

Everything here is a pure function of one label. Results are cached because the
matcher calls them for every (stock, distributor) pair.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GRADE_BRAND_NEW = "BN"
GRADE_A = "GA"
GRADE_B = "GB"
GRADE_OPEN_BOX = "OB"
GRADE_LIKE_NEW = "LN"

# Export order of the "Grade Counts" column
GRADE_CODES = (GRADE_BRAND_NEW, GRADE_A, GRADE_B, GRADE_OPEN_BOX, GRADE_LIKE_NEW)

GRADE_TAGS: Dict[str, str] = {
    'Brand New': GRADE_BRAND_NEW,
    'Open Box': GRADE_OPEN_BOX,
    'Like New': GRADE_LIKE_NEW,
}
# Only A and B exist in the stock system; "Grade C" is not a sellable grade
GRADE_LETTERS: Dict[str, str] = {'A': GRADE_A, 'B': GRADE_B}

UNIT_GB = "GB"
UNIT_TB = "TB"

# Bare numbers are only trusted as storage when they are a real capacity
CANONICAL_STORAGE_SIZES = (32, 64, 128, 256, 512, 1024)

# Distributor color spellings → canonical color. A spelling listed under two
# colors resolves to the first group.
COLOR_GROUPS: Dict[str, Tuple[str, ...]] = {
    'black': ('black', 'blk', 'blac', 'cosmicblk', 'electricblack', 'fluidblk', 'mdnblk', 'mdnght',
              'mdnghtblack', 'mdnghtblk', 'mdntblk', 'midnight', 'midnightblack', 'midntblk',
              'obsidian', 'spblk', 'sprkleblk', 'crftdblk', 'grphtblk', 'glowingblck'),
    'blue': ('blu', 'blue', 'iceblue', 'icyblue', 'navy', 'saphrblue', 'seablue', 'sirblu',
             'skyblu', 'slvblu', 'cyanlake', 'mdntgryblue'),
    'green': ('green', 'grn', 'mintgreen', 'mintgrn', 'mntgrn', 'epigrn', 'emraldgrn', 'emrldgrn',
              'lghtgrn', 'sagegrn', 'olive'),
    'grey': ('grey', 'gry', 'gray', 'granitegrey', 'graphite', 'grpht', 'graphitegry', 'onyxgry',
             'carbongrey', 'chrcoalgry', 'hazelgrey', 'lghtgry'),
    'purple': ('purple', 'purpl', 'ppl', 'lavender', 'lavndr', 'vilet', 'violet', 'borapurple',
               'lvndr', 'lavndrpink', 'lvndrpink'),
    'pink': ('pink', 'pkgld', 'pnkgld', 'lilcpnk', 'peach', 'rose', 'rosegold'),
    'gold': ('gold', 'gld'),
    'silver': ('silver', 'silv', 'slv', 'slvr', 'silvr', 'ttnmslv', 'crystlslv'),
    'white': ('white', 'wht', 'whte', 'frstdwht', 'prsmwht', 'starlight', 'cloudywhte', 'porcelain'),
    'cream': ('cream', 'crem', 'beige'),
    'yellow': ('yellow', 'yellw'),
    'orange': ('orange', 'ornge', 'orangecopp'),
    'red': ('red', 'burgundy', 'burgdy', 'brz'),
}

_COLOR_LOOKUP: Dict[str, str] = {}
for _color, _spellings in COLOR_GROUPS.items():
    for _spelling in _spellings:
        _COLOR_LOOKUP.setdefault(_spelling, _color)


# ---------------------------------------------------------------------------
# Storage spec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StorageSpec:
    """One or more capacities parsed from a label ("(64 256)" is a two-size bundle)."""

    sizes: Tuple[int, ...]
    unit: str = UNIT_GB
    is_multiple: bool = False

    @property
    def key(self) -> str:
        """
        Storage bucket key used for grouping and comparison.

        Examples:
            (128,) GB -> '128'      (explicit "128GB" and implied "128" share it)
            (1,) TB   -> '1TB'
            (64, 256) -> '64,256'
        """
        if self.is_multiple:
            return ','.join(str(s) for s in self.sizes)
        if self.unit == UNIT_TB:
            return f"{self.sizes[0]}{UNIT_TB}"
        return str(self.sizes[0])

    @property
    def label(self) -> str:
        return '/'.join(f"{s}{self.unit}" for s in self.sizes)

    def tokens(self) -> List[str]:
        """Lowercase '<size><unit>' tokens as they appear in stock descriptions."""
        return [f"{s}{self.unit.lower()}" for s in self.sizes]


# ---------------------------------------------------------------------------
# Text normalization
# ---------------------------------------------------------------------------

_FIVE_G_TOKEN = re.compile(r'\b5G\s+')
_BRACKET_TAG = re.compile(r'\[[^\]]*\]')
_PAREN_GB = re.compile(r'\((\d+)\s*GB\)', re.IGNORECASE)
_PARENS = re.compile(r'[()]')
_WHITESPACE = re.compile(r'\s+')


def _normalize_once(s: str) -> str:
    s = _FIVE_G_TOKEN.sub('', s)
    s = _BRACKET_TAG.sub('', s)
    s = _PAREN_GB.sub(r'(\1)', s)
    s = _PARENS.sub(' ', s)
    return _WHITESPACE.sub(' ', s).strip()


def normalize_label(label: str) -> str:
    """
    Reduce a product label to a comparable name.

    Steps (order matters):
        1. Drop the "5G" token and its trailing whitespace
        2. Drop bracketed grade tags: "[Brand New]", "[Grade A]"
        3. "(128GB)" → "(128)"
        4. Parentheses → spaces (the digits stay)
        5. Collapse whitespace

    Examples:
        'Galaxy A54 5G (128GB) [Brand New]' -> 'Galaxy A54 128'
        'iPhone 13 Pro (256GB) [Grade A]'   -> 'iPhone 13 Pro 256'
    """
    if not isinstance(label, str) or not label.strip():
        return ""
    return _normalize_label(label)


@lru_cache(maxsize=50000)
def _normalize_label(label: str) -> str:
    s = _normalize_once(label)
    # Stripping parentheses can expose a new "5G " token ("5G(128GB)" → "5G 128")
    while True:
        again = _normalize_once(s)
        if again == s:
            return s
        s = again


def name_variations(name: str) -> List[str]:
    """
    Spellings of a normalized name that the distributor may use instead.

    Each axis fires on its own; variations are never combined:
        - Plus/+:      'Galaxy S23 Plus' ↔ 'Galaxy S23+'
        - SE gen:      'iPhone SE 3rd Gen 64' → 'iPhone SE3 64'
        - Pixel Pro:   'Google Pixel 7 Pro 128' → 'Google Pixel 7Pro 128'
    """
    if not name:
        return []
    variations = [name]

    if re.search(r' plus\b', name, re.IGNORECASE):
        variations.append(re.sub(r' plus\b', '+', name, count=1, flags=re.IGNORECASE))
    elif '+' in name:
        variations.append(name.replace('+', ' Plus', 1))

    if ' SE ' in f"{name} ".upper():
        se_match = re.search(r'SE (\d)(?:st|nd|rd|th) Gen', name, re.IGNORECASE)
        if se_match:
            variations.append(re.sub(r'SE \d(?:st|nd|rd|th) Gen', f"SE{se_match.group(1)}",
                                     name, count=1, flags=re.IGNORECASE))

    if ' PIXEL ' in f" {name} ".upper():
        pixel_match = re.search(r'Pixel (\d+) Pro', name, re.IGNORECASE)
        if pixel_match:
            variations.append(re.sub(r'Pixel (\d+) Pro', r'Pixel \1Pro', name, count=1,
                                     flags=re.IGNORECASE))

    return variations


def clean_distributor_label(label: str) -> str:
    """Drop the distributor's ' - <condition text>' suffix: 'X 128GB - Pristine' -> 'X 128GB'."""
    if not isinstance(label, str):
        return ''
    return label.split(' -')[0].strip()


# ---------------------------------------------------------------------------
# Attribute extraction
# ---------------------------------------------------------------------------

_MULTI_STORAGE = re.compile(r'\((\d+)(?:GB|TB)?\s+(\d+)(?:GB|TB)?\)', re.IGNORECASE)
_PAREN_STORAGE = re.compile(r'\((\d+)\s*(GB|TB)\)', re.IGNORECASE)
_BARE_STORAGE = re.compile(r'(?<!\d)(\d+)\s*(GB|TB)', re.IGNORECASE)
_NUMBER_WITH_SUFFIX = re.compile(r'^(\d+)([a-z]+)$')


def extract_storage(label: str) -> Optional[StorageSpec]:
    """
    Extract storage capacity from a label. First rule that matches wins:

        1. Two values in one pair of parentheses: '(64 256)'  → multi, GB
        2. Parenthesized single value: '(128GB)', '(1TB)'
        3. Bare value with unit anywhere: '128GB', '1 TB'
        4. Bare canonical size token: '128', or '128blk' glued to a color
           (implied GB; several hits give a multi-size spec)

    Parenthesized values are the stock system's own storage field, so they win.
    Bare numbers collide with model numbers and prices, hence the canonical
    size whitelist on the last rule.
    """
    if not isinstance(label, str) or not label.strip():
        return None
    return _extract_storage(label)


@lru_cache(maxsize=50000)
def _extract_storage(label: str) -> Optional[StorageSpec]:
    m = _MULTI_STORAGE.search(label)
    if m:
        return StorageSpec(sizes=(int(m.group(1)), int(m.group(2))), unit=UNIT_GB, is_multiple=True)

    m = _PAREN_STORAGE.search(label) or _BARE_STORAGE.search(label)
    if m:
        return StorageSpec(sizes=(int(m.group(1)),), unit=m.group(2).upper())

    sizes = []
    for token in label.lower().split():
        if token.isdigit():
            size = int(token)
        else:
            glued = _NUMBER_WITH_SUFFIX.match(token)
            if not glued or glued.group(2) not in _COLOR_LOOKUP:
                continue
            size = int(glued.group(1))
        if size in CANONICAL_STORAGE_SIZES:
            sizes.append(size)
    if sizes:
        return StorageSpec(sizes=tuple(sizes), unit=UNIT_GB, is_multiple=len(sizes) > 1)

    return None


def extract_grade(label: str) -> Optional[str]:
    """
    Grade code from the first recognised bracketed tag.

    Examples:
        'Galaxy S23 (256GB) [Brand New]' -> 'BN'
        'iPhone 12 (64GB) [grade b]'     -> 'GB'
        'iPhone 12 (64GB) [Grade C]'     -> None
        'iPhone 12 (64GB)'               -> None
    """
    if not isinstance(label, str):
        return None
    return _extract_grade(label)


@lru_cache(maxsize=50000)
def _extract_grade(label: str) -> Optional[str]:
    for tag in re.findall(r'\[([^\]]*)\]', label):
        tag = tag.strip()
        if tag in GRADE_TAGS:
            return GRADE_TAGS[tag]
        grade_match = re.fullmatch(r'grade\s*([a-z])', tag, re.IGNORECASE)
        if grade_match:
            code = GRADE_LETTERS.get(grade_match.group(1).upper())
            if code:
                return code
    return None


def extract_color(label: str) -> Optional[str]:
    """
    Canonical color from a distributor label, tolerating its abbreviations.

    Examples:
        'SAMSUNG GALAXY A54 5G SM-A546 128GB BLACK' -> 'black'
        'GALAXY S23 256 MDNGHTBLK'                  -> 'black'
        'GALAXY A34 128LVNDR'                       -> 'purple'
    """
    if not isinstance(label, str):
        return None
    return _extract_color(label)


@lru_cache(maxsize=50000)
def _extract_color(label: str) -> Optional[str]:
    for token in re.split(r'[^a-z0-9]+', label.lower()):
        # "128blk" style: color glued to the storage value
        token = re.sub(r'^\d+(?:gb|tb)?', '', token)
        if token in _COLOR_LOOKUP:
            return _COLOR_LOOKUP[token]
    return None
