"""
Stock reconciliation engine: matches stock rows (source A) to distributor rows
(source B) and rolls stock quantities up by condition grade.

Matching Approach (three passes, strictly in order):
    1. Model: stock model code ("SM-A546") found as a whole token in the
       distributor label, with compatible storage
    2. Name: normalized stock name is a prefix of the normalized distributor
       label (with Plus/+, SE gen and Pixel Pro spellings)
    3. Flexible: for Samsung phones still unmatched, the distributor label is
       reduced to a model key ("galaxy a54 5g") + storage and searched
       for inside stock descriptions

A distributor row claimed by a pass is never offered to a later pass, so each
distributor row lands in at most one group. Passes are folded over a
ReconcileState(claimed, groups) that every call builds from scratch.

Output:
    One row per distributor row, in input order, with Quantity, Match Type,
    Matching Products and Grade Counts ("BN:<n>,GA:<n>,GB:<n>,OB:<n>,LN:<n>").
    Rows no pass claimed are kept with Quantity 0 and Match Type "NotMatched".
"""

import logging
import math
import re
from collections import OrderedDict, namedtuple
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from rapidfuzz import fuzz, process

from device_models import (
    identify_model,
    infer_brand,
    is_accessory_description,
    is_accessory_label,
    is_flexible_brand,
)
from product_text import (
    GRADE_CODES,
    UNIT_GB,
    UNIT_TB,
    StorageSpec,
    clean_distributor_label,
    extract_color,
    extract_grade,
    extract_storage,
    name_variations,
    normalize_label,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MATCH_TYPE_MODEL = "Model"
MATCH_TYPE_NAME = "Name"
MATCH_TYPE_FLEXIBLE = "Flexible"
MATCH_TYPE_NOT_MATCHED = "NotMatched"

# Model cells shorter than this are placeholders ("-", "N/A", "TBC")
MIN_MODEL_CODE_LENGTH = 4

# Output columns appended to each distributor row
COL_QUANTITY = 'Quantity'
COL_MATCH_TYPE = 'Match Type'
COL_MATCHING_PRODUCTS = 'Matching Products'
COL_GRADE_COUNTS = 'Grade Counts'
OUTPUT_COLUMNS = [COL_QUANTITY, COL_MATCH_TYPE, COL_MATCHING_PRODUCTS, COL_GRADE_COUNTS]

# Diagnostic columns (reconcile_frames(..., diagnostic=True))
COL_MODEL_KEY = 'Model Key'
COL_STORAGE = 'Storage'
COL_COLOR = 'Color'
COL_BRAND = 'Brand'
COL_CLOSEST_PRODUCT = 'Closest Stock Product'
COL_CLOSEST_SCORE = 'Closest Score'

# Accepted header spellings per column role (compared case-insensitively)
STOCK_MODEL_COLUMNS = ('model',)
STOCK_NAME_COLUMNS = ('Name',)
STOCK_ID_COLUMNS = ('product_id',)
STOCK_QUANTITY_COLUMNS = ('quantity', 'Qty')
DESCRIPTION_ID_COLUMNS = ('product_id',)
DESCRIPTION_NAME_COLUMNS = ('name',)
DISTRIBUTOR_PRODUCT_COLUMNS = ('Product',)
DISTRIBUTOR_QUANTITY_COLUMNS = ('Qty', 'quantity')

_SAMSUNG_MODEL_CODE = re.compile(r'SM-[A-Z0-9]+(?:/(?:DSN|DS))?')
_DS_SUFFIX = re.compile(r'/DSN?$')


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class MissingColumnsError(ValueError):
    """An input table lacks columns the reconciler needs; nothing was computed."""

    def __init__(self, table: str, missing: Sequence[str]):
        self.table = table
        self.missing = list(missing)
        super().__init__(f"Missing required columns in {table}: {', '.join(self.missing)}")


# ---------------------------------------------------------------------------
# Cell helpers
# ---------------------------------------------------------------------------

def _clean_cell(value: Any) -> str:
    """Spreadsheet cell → stripped string; NaN/None/'nan' → ''. 101.0 → '101'."""
    if value is None:
        return ''
    if isinstance(value, float):
        if math.isnan(value):
            return ''
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    if text.lower() in ('nan', 'none', 'nat', '<na>'):
        return ''
    return text


def parse_quantity(value: Any) -> int:
    """
    Stock quantity as a non-negative int. Anything unusable counts as 0.

    Examples:
        12 -> 12, '7' -> 7, '3.0' -> 3, '5 units' -> 5,
        -2 -> 0, 'n/a' -> 0, NaN -> 0, None -> 0
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(str(value).strip())
    except ValueError:
        leading = re.match(r'\s*(\d+)', str(value))
        return int(leading.group(1)) if leading else 0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0
    return int(number)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProductRecord:
    """
    One row of either source, coerced to a common shape.

    The label is cleaned, the quantity parsed and, when not given, the grade is
    read from the label's bracketed tag. Everything else (normalized name,
    storage, color) is derived on demand from cached extractors.
    """

    raw_label: str
    model: Optional[str] = None
    product_id: Optional[str] = None
    quantity: int = 0
    grade: Optional[str] = None
    raw_attributes: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        label = _clean_cell(self.raw_label)
        object.__setattr__(self, 'raw_label', label)
        object.__setattr__(self, 'model', _clean_cell(self.model) or None)
        object.__setattr__(self, 'product_id', _clean_cell(self.product_id) or None)
        object.__setattr__(self, 'quantity', parse_quantity(self.quantity))
        if self.grade is None:
            object.__setattr__(self, 'grade', extract_grade(label))

    @property
    def model_code(self) -> Optional[str]:
        """Upper-cased model usable as a whole-token key, or None for placeholders."""
        if not self.model:
            return None
        code = self.model.upper()
        if len(code) < MIN_MODEL_CODE_LENGTH or ' ' in code:
            return None
        return code

    @property
    def normalized_name(self) -> str:
        return normalize_label(self.raw_label)

    @property
    def storage(self) -> Optional[StorageSpec]:
        return extract_storage(self.raw_label)

    @property
    def color(self) -> Optional[str]:
        return extract_color(self.raw_label)


@dataclass(frozen=True)
class MatchGroup:
    """Stock rows sharing one key and the distributor rows they claimed."""

    key: str
    match_type: str
    member_indices: FrozenSet[int]
    grade_counts: Dict[str, int]
    total_quantity: int
    source_indices: FrozenSet[int] = frozenset()
    products: Tuple[str, ...] = ()

    @property
    def grade_counts_label(self) -> str:
        return format_grade_counts(self.grade_counts)


# claimed: frozenset of distributor indices taken by earlier passes
# groups:  tuple of MatchGroup in creation order
ReconcileState = namedtuple('ReconcileState', ['claimed', 'groups'])


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def aggregate_grades(records: Iterable[ProductRecord]) -> Tuple[Dict[str, int], int]:
    """
    Sum quantities per grade. Records without a recognised grade are not counted;
    repeated products add up.

    Returns (counts keyed by every grade code, total across grades).
    """
    counts = {code: 0 for code in GRADE_CODES}
    for record in records:
        if record.grade in counts:
            counts[record.grade] += record.quantity
    return counts, sum(counts.values())


def format_grade_counts(counts: Dict[str, int]) -> str:
    """{'BN': 10, ...} -> 'BN:10,GA:0,GB:0,OB:0,LN:0' (the export column format)."""
    return ','.join(f"{code}:{int(counts.get(code, 0))}" for code in GRADE_CODES)


def _build_group(
    key: str,
    match_type: str,
    member_indices: Iterable[int],
    records_a: Sequence[ProductRecord],
    source_indices: Sequence[int],
) -> MatchGroup:
    sources = [records_a[i] for i in source_indices]
    counts, total = aggregate_grades(sources)
    return MatchGroup(
        key=key,
        match_type=match_type,
        member_indices=frozenset(member_indices),
        grade_counts=counts,
        total_quantity=total,
        source_indices=frozenset(source_indices),
        products=tuple(r.raw_label for r in sources),
    )


# ---------------------------------------------------------------------------
# Comparison rules
# ---------------------------------------------------------------------------

def model_in_label(model: str, label: str) -> bool:
    """
    Whether a stock model code appears in a distributor label.

    General rule: the code must be a whole whitespace-delimited token
    ('SM-A546' is in '... SM-A546 128GB', not in '... SM-A546B 128GB').

    Samsung labels with SM- codes are stricter: the label's first SM- code must
    have the same base code, and a /DS or /DSN suffix must be present on both
    sides or on neither ('SM-A546/DS' does not match 'SM-A546').
    """
    if not model or not label:
        return False
    text = label.upper()
    if model.startswith('SM-') and text.lstrip().startswith('SAMSUNG'):
        code_match = _SAMSUNG_MODEL_CODE.search(clean_distributor_label(text))
        if not code_match:
            return False
        code = code_match.group(0)
        if bool(_DS_SUFFIX.search(model)) != bool(_DS_SUFFIX.search(code)):
            return False
        return _DS_SUFFIX.sub('', model) == _DS_SUFFIX.sub('', code)
    return re.search(rf'(?:^|\s){re.escape(model)}(?:\s|$)', text) is not None


def storage_satisfies(required: Optional[StorageSpec], label: str, found: Optional[StorageSpec]) -> bool:
    """
    Whether a distributor row meets a stock group's storage requirement.

        - No requirement: anything matches, including no storage
        - Multi-size requirement (64,256): every size appears in the label as a
          digit-bounded substring. One-directional: extra sizes on the
          distributor side are fine
        - TB requirement: the distributor storage must be the same TB value
        - GB requirement: the distributor storage lists that size in GB
    """
    if required is None:
        return True
    if required.is_multiple:
        return all(re.search(rf'(?<!\d){size}(?!\d)', label or '') for size in required.sizes)
    if found is None:
        return False
    if required.unit == UNIT_TB:
        return found.unit == UNIT_TB and found.key == required.key
    return found.unit == UNIT_GB and required.sizes[0] in found.sizes


# ---------------------------------------------------------------------------
# Passes
# ---------------------------------------------------------------------------

def model_pass(
    records_a: Sequence[ProductRecord],
    records_b: Sequence[ProductRecord],
    state: ReconcileState,
) -> ReconcileState:
    """Pass 1: group stock by (model code, storage key) and claim distributor rows carrying the code."""
    buckets: "OrderedDict[Tuple[str, Optional[str]], Tuple[Optional[StorageSpec], List[int]]]" = OrderedDict()
    for i, record in enumerate(records_a):
        model = record.model_code
        if not model or not record.raw_label:
            continue
        storage = record.storage
        bucket_key = (model, storage.key if storage else None)
        if bucket_key not in buckets:
            buckets[bucket_key] = (storage, [])
        buckets[bucket_key][1].append(i)

    # Storage-specific buckets first so "any storage" buckets only get leftovers
    ordered = sorted(buckets.items(), key=lambda item: item[0][1] is None)

    claimed = set(state.claimed)
    groups = []
    for (model, storage_key), (storage, source_indices) in ordered:
        members = []
        for j, candidate in enumerate(records_b):
            if j in claimed or not candidate.raw_label:
                continue
            if not model_in_label(model, candidate.raw_label):
                continue
            if not storage_satisfies(storage, candidate.raw_label, candidate.storage):
                continue
            members.append(j)
            claimed.add(j)
        if members:
            key = f"{model} ({storage_key})" if storage_key else model
            groups.append(_build_group(key, MATCH_TYPE_MODEL, members, records_a, source_indices))

    logger.debug("Model pass: %d buckets, %d groups, %d distributor rows claimed",
                 len(buckets), len(groups), len(claimed) - len(state.claimed))
    return ReconcileState(frozenset(claimed), state.groups + tuple(groups))


def name_pass(
    records_a: Sequence[ProductRecord],
    records_b: Sequence[ProductRecord],
    state: ReconcileState,
) -> ReconcileState:
    """Pass 2: stock rows not resolved by model, grouped by normalized name, prefix-matched."""
    resolved = set()
    for group in state.groups:
        if group.match_type == MATCH_TYPE_MODEL:
            resolved.update(group.source_indices)

    by_name: "OrderedDict[str, List[int]]" = OrderedDict()
    for i, record in enumerate(records_a):
        if i in resolved:
            continue
        name = record.normalized_name
        if name:
            by_name.setdefault(name, []).append(i)

    distributor_names = [normalize_label(r.raw_label).lower() for r in records_b]

    claimed = set(state.claimed)
    groups = []
    for name, source_indices in by_name.items():
        variations = [v.lower() for v in name_variations(name)]
        members = []
        for j, candidate_name in enumerate(distributor_names):
            if j in claimed or not candidate_name:
                continue
            if any(candidate_name.startswith(v) for v in variations):
                members.append(j)
                claimed.add(j)
        if members:
            groups.append(_build_group(name, MATCH_TYPE_NAME, members, records_a, source_indices))

    logger.debug("Name pass: %d names, %d groups, %d distributor rows claimed",
                 len(by_name), len(groups), len(claimed) - len(state.claimed))
    return ReconcileState(frozenset(claimed), state.groups + tuple(groups))


def flexible_pass(
    records_a: Sequence[ProductRecord],
    records_b: Sequence[ProductRecord],
    state: ReconcileState,
) -> ReconcileState:
    """
    Pass 3: read the distributor label as the structured side.

    Unclaimed Samsung rows that are not accessories are reduced to
    (model key, storage); stock descriptions containing the key and every
    '<size><unit>' token form the group.
    """
    descriptions = [
        (i, record.raw_label.lower())
        for i, record in enumerate(records_a)
        if record.raw_label and not is_accessory_description(record.raw_label)
    ]

    claimed = set(state.claimed)
    groups = []
    for j, candidate in enumerate(records_b):
        label = candidate.raw_label
        if j in claimed or not label:
            continue
        if not is_flexible_brand(label) or is_accessory_label(label):
            continue
        model_key, storage = identify_model(label)
        if not model_key or storage is None:
            continue
        # '8gb' must not be found inside '128gb'
        token_patterns = [re.compile(rf'(?<!\d){re.escape(t)}') for t in storage.tokens()]
        source_indices = [
            i for i, description in descriptions
            if model_key in description and all(p.search(description) for p in token_patterns)
        ]
        if not source_indices:
            continue
        claimed.add(j)
        groups.append(_build_group(label, MATCH_TYPE_FLEXIBLE, [j], records_a, source_indices))

    logger.debug("Flexible pass: %d groups, %d distributor rows claimed",
                 len(groups), len(claimed) - len(state.claimed))
    return ReconcileState(frozenset(claimed), state.groups + tuple(groups))


MATCH_PASSES: List[Callable[..., ReconcileState]] = [model_pass, name_pass, flexible_pass]


def run_passes(
    records_a: Sequence[ProductRecord],
    records_b: Sequence[ProductRecord],
) -> ReconcileState:
    """Fold every pass over a fresh state. Keeps zero-quantity groups (see reconcile)."""
    state = ReconcileState(frozenset(), ())
    for match_pass in MATCH_PASSES:
        state = match_pass(records_a, records_b, state)
    return state


def reconcile(
    records_a: Sequence[ProductRecord],
    records_b: Sequence[ProductRecord],
) -> List[MatchGroup]:
    """
    Match stock records against distributor records.

    Returns the groups with stock to offer (total quantity > 0), in pass order.
    Distributor rows claimed by a suppressed zero-quantity group stay claimed
    and are reported as not matched.
    """
    state = run_passes(records_a, records_b)
    return [group for group in state.groups if group.total_quantity > 0]


# ---------------------------------------------------------------------------
# Output rows
# ---------------------------------------------------------------------------

def enrich_distributor_rows(
    records_b: Sequence[ProductRecord],
    groups: Sequence[MatchGroup],
) -> pd.DataFrame:
    """
    One output row per distributor record: its original fields plus
    Quantity, Match Type, Matching Products and Grade Counts.
    """
    group_by_index: Dict[int, MatchGroup] = {}
    for group in groups:
        for j in group.member_indices:
            group_by_index.setdefault(j, group)

    rows = []
    for j, record in enumerate(records_b):
        row = dict(record.raw_attributes) if record.raw_attributes else {'Product': record.raw_label}
        group = group_by_index.get(j)
        if group is not None:
            row[COL_QUANTITY] = group.total_quantity
            row[COL_MATCH_TYPE] = group.match_type
            row[COL_MATCHING_PRODUCTS] = '\n'.join(group.products)
            row[COL_GRADE_COUNTS] = group.grade_counts_label
        else:
            row[COL_QUANTITY] = 0
            row[COL_MATCH_TYPE] = MATCH_TYPE_NOT_MATCHED
            row[COL_MATCHING_PRODUCTS] = ''
            row[COL_GRADE_COUNTS] = ''
        rows.append(row)

    if not rows:
        return pd.DataFrame(columns=['Product'] + OUTPUT_COLUMNS)
    return pd.DataFrame(rows)


def add_diagnostic_columns(
    df_enriched: pd.DataFrame,
    records_a: Sequence[ProductRecord],
    records_b: Sequence[ProductRecord],
) -> pd.DataFrame:
    """
    Add per-row extraction results and, for NotMatched rows, the closest stock
    name by token_sort_ratio so reviewers can see near misses.
    """
    df = df_enriched.copy()
    stock_names = list(OrderedDict.fromkeys(r.normalized_name.lower() for r in records_a if r.normalized_name))

    model_keys, storages, colors, brands, closest_names, closest_scores = [], [], [], [], [], []
    for record, match_type in zip(records_b, df[COL_MATCH_TYPE]):
        model_key, storage = identify_model(record.raw_label)
        model_keys.append(model_key or '')
        storages.append(storage.label if storage else '')
        colors.append(record.color or '')
        brands.append(infer_brand(record.raw_label))

        best = None
        if match_type == MATCH_TYPE_NOT_MATCHED and stock_names and record.raw_label:
            best = process.extractOne(normalize_label(record.raw_label).lower(), stock_names,
                                      scorer=fuzz.token_sort_ratio)
        closest_names.append(best[0] if best else '')
        closest_scores.append(round(best[1], 2) if best else 0.0)

    df[COL_MODEL_KEY] = model_keys
    df[COL_STORAGE] = storages
    df[COL_COLOR] = colors
    df[COL_BRAND] = brands
    df[COL_CLOSEST_PRODUCT] = closest_names
    df[COL_CLOSEST_SCORE] = closest_scores
    return df


# ---------------------------------------------------------------------------
# DataFrame boundary
# ---------------------------------------------------------------------------

def _find_column(columns: Iterable[Any], candidates: Sequence[str]) -> Optional[Any]:
    """First column whose stripped, lower-cased header equals one of the candidates."""
    lookup = {}
    for col in columns:
        lookup.setdefault(str(col).strip().lower(), col)
    for candidate in candidates:
        if candidate.lower() in lookup:
            return lookup[candidate.lower()]
    return None


def validate_columns(df: pd.DataFrame, roles: Sequence[Sequence[str]], table: str) -> List[Any]:
    """
    Resolve one column per role, e.g. roles=[('model',), ('quantity', 'Qty')].

    Returns the actual column names in role order. Raises MissingColumnsError
    naming every unresolved role ('quantity|Qty').
    """
    if df is None:
        raise MissingColumnsError(table, ['|'.join(role) for role in roles])
    resolved, missing = [], []
    for role in roles:
        col = _find_column(df.columns, role)
        if col is None:
            missing.append('|'.join(role))
        resolved.append(col)
    if missing:
        raise MissingColumnsError(table, missing)
    return resolved


def records_from_stock_frame(
    df_stock: pd.DataFrame,
    df_descriptions: Optional[pd.DataFrame] = None,
) -> Tuple[List[ProductRecord], Dict]:
    """
    Coerce the stock table into ProductRecords.

    Two layouts are accepted:
        - model, Name, Qty/quantity                     (single stock export)
        - model, product_id, quantity + a descriptions
          table with product_id, name                   (split export)

    Returns:
        - Records in row order (rows without any label are skipped)
        - Stats dict (includes 'warnings' list)
    """
    warnings = []

    if df_descriptions is not None:
        model_col, id_col, qty_col = validate_columns(
            df_stock, [STOCK_MODEL_COLUMNS, STOCK_ID_COLUMNS, STOCK_QUANTITY_COLUMNS], 'stock')
        desc_id_col, desc_name_col = validate_columns(
            df_descriptions, [DESCRIPTION_ID_COLUMNS, DESCRIPTION_NAME_COLUMNS], 'descriptions')
        name_col = None

        descriptions: Dict[str, str] = {}
        duplicate_ids = 0
        for product_id, name in zip(df_descriptions[desc_id_col], df_descriptions[desc_name_col]):
            product_id = _clean_cell(product_id)
            if not product_id:
                continue
            if product_id in descriptions:
                duplicate_ids += 1
                continue
            descriptions[product_id] = _clean_cell(name)
        if duplicate_ids:
            warnings.append(f"{duplicate_ids} duplicate product_id rows in descriptions (first kept)")
    else:
        model_col, name_col, qty_col = validate_columns(
            df_stock, [STOCK_MODEL_COLUMNS, STOCK_NAME_COLUMNS, STOCK_QUANTITY_COLUMNS], 'stock')
        id_col = _find_column(df_stock.columns, STOCK_ID_COLUMNS)
        descriptions = {}

    records = []
    no_label = 0
    for _, row in df_stock.iterrows():
        product_id = _clean_cell(row.get(id_col)) if id_col is not None else ''
        if name_col is not None:
            label = _clean_cell(row.get(name_col))
        else:
            label = descriptions.get(product_id, '')
        if not label:
            no_label += 1
            continue
        records.append(ProductRecord(
            raw_label=label,
            model=row.get(model_col),
            product_id=product_id,
            quantity=row.get(qty_col),
            raw_attributes=row.to_dict(),
        ))

    no_model = sum(1 for r in records if r.model_code is None)
    no_grade = sum(1 for r in records if r.grade is None)
    if no_label:
        warnings.append(f"{no_label} stock rows have no product name and were skipped")
    if no_grade:
        warnings.append(f"{no_grade} stock rows have no recognised grade tag and add no quantity")

    stats = {
        'stock_rows': len(df_stock),
        'stock_records': len(records),
        'skipped_no_label': no_label,
        'without_model': no_model,
        'without_grade': no_grade,
        'warnings': warnings,
    }
    return records, stats


def records_from_distributor_frame(df_distributor: pd.DataFrame) -> List[ProductRecord]:
    """
    Coerce the distributor table into ProductRecords, one per row.

    Rows with an empty Product are kept (as empty labels) so that every
    distributor row gets an output row.
    """
    (product_col,) = validate_columns(df_distributor, [DISTRIBUTOR_PRODUCT_COLUMNS], 'distributor')
    qty_col = _find_column(df_distributor.columns, DISTRIBUTOR_QUANTITY_COLUMNS)

    records = []
    for _, row in df_distributor.iterrows():
        records.append(ProductRecord(
            raw_label=row.get(product_col),
            quantity=row.get(qty_col) if qty_col is not None else 0,
            raw_attributes=row.to_dict(),
        ))
    return records


def reconcile_frames(
    df_stock: pd.DataFrame,
    df_distributor: pd.DataFrame,
    df_descriptions: Optional[pd.DataFrame] = None,
    diagnostic: bool = False,
) -> Tuple[pd.DataFrame, Dict]:
    """
    Run the whole reconciliation on already-parsed tables.

    Args:
        df_stock: stock export (model, Name|product_id, quantity|Qty)
        df_distributor: distributor list (Product, optionally Grade/Qty)
        df_descriptions: optional product_id → name table for split exports
        diagnostic: add extraction and closest-candidate columns

    Returns:
        - Distributor rows with Quantity, Match Type, Matching Products, Grade Counts
        - Stats dict (record counts, per-type match counts, warnings)

    Raises:
        MissingColumnsError: a required column is absent
    """
    records_a, stats = records_from_stock_frame(df_stock, df_descriptions)
    records_b = records_from_distributor_frame(df_distributor)

    state = run_passes(records_a, records_b)
    groups = [group for group in state.groups if group.total_quantity > 0]
    df_enriched = enrich_distributor_rows(records_b, groups)
    if diagnostic:
        df_enriched = add_diagnostic_columns(df_enriched, records_a, records_b)

    match_counts = df_enriched[COL_MATCH_TYPE].value_counts().to_dict() if len(df_enriched) else {}
    suppressed = len(state.groups) - len(groups)
    if suppressed:
        stats['warnings'].append(
            f"{suppressed} matched groups had no graded stock and were reported as not matched")

    stats.update({
        'distributor_rows': len(records_b),
        'groups': len(groups),
        'suppressed_groups': suppressed,
        'model_matches': int(match_counts.get(MATCH_TYPE_MODEL, 0)),
        'name_matches': int(match_counts.get(MATCH_TYPE_NAME, 0)),
        'flexible_matches': int(match_counts.get(MATCH_TYPE_FLEXIBLE, 0)),
        'unmatched': int(match_counts.get(MATCH_TYPE_NOT_MATCHED, 0)),
    })
    logger.info("Reconciled %d stock records against %d distributor rows: "
                "%d model, %d name, %d flexible, %d unmatched",
                len(records_a), len(records_b), stats['model_matches'], stats['name_matches'],
                stats['flexible_matches'], stats['unmatched'])
    return df_enriched, stats


# ---------------------------------------------------------------------------
# Summary metrics
# ---------------------------------------------------------------------------

def compute_match_summary(df_enriched: pd.DataFrame) -> Dict[str, Any]:
    """
    Summary of a reconciled distributor table.

    Returns a dict with:
        total_rows: int, distributor rows
        <type>_count / <type>_rate for model, name, flexible, not_matched
        matched_rate: share of rows with any match
        matched_quantity: stock units offered across matched rows
    """
    types = {
        'model': MATCH_TYPE_MODEL,
        'name': MATCH_TYPE_NAME,
        'flexible': MATCH_TYPE_FLEXIBLE,
        'not_matched': MATCH_TYPE_NOT_MATCHED,
    }
    total = len(df_enriched)
    summary: Dict[str, Any] = {'total_rows': total}
    if total == 0:
        for name in types:
            summary[f'{name}_count'] = 0
            summary[f'{name}_rate'] = 0.0
        summary.update({'matched_rate': 0.0, 'matched_quantity': 0})
        return summary

    counts = df_enriched[COL_MATCH_TYPE].value_counts()
    for name, match_type in types.items():
        count = int(counts.get(match_type, 0))
        summary[f'{name}_count'] = count
        summary[f'{name}_rate'] = round(count / total * 100, 1)

    matched = df_enriched[df_enriched[COL_MATCH_TYPE] != MATCH_TYPE_NOT_MATCHED]
    summary['matched_rate'] = round(len(matched) / total * 100, 1)
    summary['matched_quantity'] = int(pd.to_numeric(matched[COL_QUANTITY], errors='coerce').fillna(0).sum())
    return summary
