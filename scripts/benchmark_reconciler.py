"""
Micro-benchmark for stock_reconciler.py.

Tests:
1. Label hot spots (normalize_label, extract_storage, identify_model) with caches cold
2. reconcile() on synthetic 2k stock rows x 1k distributor rows
3. reconcile_frames() end-to-end including DataFrame coercion

Usage:
    python benchmark_reconciler.py
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
import time
import pandas as pd
import numpy as np
from product_text import normalize_label, extract_storage, _normalize_label, _extract_storage, GRADE_TAGS
from device_models import identify_model, _identify_model
from stock_reconciler import (
    records_from_stock_frame, records_from_distributor_frame, reconcile,
    reconcile_frames, compute_match_summary,
)

SERIES = ['A14', 'A34', 'A54', 'S23', 'S23 Ultra', 'S24', 'S24+', 'Z Flip5', 'Z Fold5']
STORAGE = [64, 128, 256, 512]
COLORS = ['BLACK', 'MDNGHTBLK', 'GRPHT', 'LVNDR', 'CREAM', 'SLVR']
STOCK_TAGS = list(GRADE_TAGS) + ['Grade A', 'Grade B', 'Grade C']


def _model_code(series: str) -> str:
    digits = ''.join(ch for ch in series if ch.isdigit())
    prefix = 'F' if 'Z' in series else series[0]
    return f"SM-{prefix}{digits}6"


def generate_synthetic_stock(n_rows: int = 2000) -> pd.DataFrame:
    """Stock rows: half carry a model code, grade tags from the full table."""
    data = []
    for i in range(n_rows):
        series = np.random.choice(SERIES)
        storage = np.random.choice(STORAGE)
        tag = np.random.choice(STOCK_TAGS)
        data.append({
            'model': _model_code(series) if np.random.rand() < 0.5 else '',
            'Name': f"Galaxy {series} 5G ({storage}GB) [{tag}]",
            'quantity': int(np.random.randint(0, 20)),
        })
    return pd.DataFrame(data)


def generate_synthetic_distributor(n_rows: int = 1000) -> pd.DataFrame:
    """Distributor rows: upper-case labels, some with model codes, some accessories."""
    data = []
    for i in range(n_rows):
        series = np.random.choice(SERIES)
        storage = np.random.choice(STORAGE)
        color = np.random.choice(COLORS)
        roll = np.random.rand()
        if roll < 0.4:
            label = f"SAMSUNG GALAXY {series.upper()} 5G {_model_code(series)} {storage}GB {color}"
        elif roll < 0.8:
            label = f"SAMSUNG GALAXY {series.upper()} 5G {storage}GB {color}"
        elif roll < 0.9:
            label = f"Galaxy {series} {storage}GB {color.title()}"
        else:
            label = f"Samsung Galaxy {series} Clear Case"
        data.append({'Product': label, 'Grade': 'A', 'Qty': int(np.random.randint(1, 50))})
    return pd.DataFrame(data)


def benchmark_function(func, *args, **kwargs):
    """Benchmark a function and return (result, elapsed_ms)."""
    start = time.perf_counter()
    result = func(*args, **kwargs)
    end = time.perf_counter()
    elapsed_ms = (end - start) * 1000
    return result, elapsed_ms


def benchmark_label_functions(n_iterations: int = 10000):
    """Cold-cache cost of the per-label extractors."""
    test_strings = [
        "Galaxy A54 5G (128GB) [Brand New]",
        "SAMSUNG GALAXY S23 ULTRA 5G SM-S918 256GB PHTMBLK",
        "SAMSUNG GALAXY Z FLIP5 512GB LTE MINT",
        "iPhone 13 Pro (256GB) [Grade A]",
        "IPHONE 13 PRO 256GB - PRISTINE",
    ]

    print("\n" + "="*70)
    print("BENCHMARK: label extractors (cache cleared each call)")
    print("="*70)

    for func, cache in ((normalize_label, _normalize_label), (extract_storage, _extract_storage),
                        (identify_model, _identify_model)):
        print(f"\n{func.__name__}()")
        for test_str in test_strings:
            start = time.perf_counter()
            for _ in range(n_iterations):
                cache.cache_clear()
                _ = func(test_str)
            end = time.perf_counter()

            elapsed_ms = (end - start) * 1000
            per_call_us = elapsed_ms * 1000 / n_iterations
            print(f"  {test_str[:50]:<50} {per_call_us:8.2f}μs/call")


def benchmark_reconcile():
    """reconcile() on pre-built records."""
    print("\n" + "="*70)
    print("BENCHMARK: reconcile() - 2k stock x 1k distributor")
    print("="*70)

    df_stock = generate_synthetic_stock(2000)
    df_dist = generate_synthetic_distributor(1000)

    (records_a, stats), coerce_a = benchmark_function(records_from_stock_frame, df_stock)
    records_b, coerce_b = benchmark_function(records_from_distributor_frame, df_dist)
    print(f"\n  Stock coercion: {coerce_a:.2f}ms ({len(records_a)} records)")
    print(f"  Distributor coercion: {coerce_b:.2f}ms ({len(records_b)} records)")

    groups, elapsed = benchmark_function(reconcile, records_a, records_b)
    print(f"  Reconcile: {elapsed:.2f}ms")
    print(f"  Groups: {len(groups)}")
    print(f"  Throughput: {len(records_b) / (elapsed / 1000):.0f} distributor rows/sec")
    if stats['warnings']:
        print("  Warnings:")
        for warning in stats['warnings']:
            print(f"    - {warning}")


def benchmark_reconcile_frames():
    """End-to-end run including enrichment and diagnostics."""
    print("\n" + "="*70)
    print("BENCHMARK: reconcile_frames() - End-to-end")
    print("="*70)

    df_stock = generate_synthetic_stock(2000)
    df_dist = generate_synthetic_distributor(1000)

    for diagnostic in (False, True):
        (df_result, _), elapsed = benchmark_function(
            reconcile_frames, df_stock, df_dist, diagnostic=diagnostic)
        print(f"\n  diagnostic={diagnostic}: {elapsed:.2f}ms")

    summary = compute_match_summary(df_result)
    print(f"\nMatch Results:")
    for name in ('model', 'name', 'flexible', 'not_matched'):
        print(f"  {name}: {summary[f'{name}_count']} ({summary[f'{name}_rate']:.1f}%)")
    print(f"  Matched quantity: {summary['matched_quantity']}")


def main():
    """Run all benchmarks."""
    np.random.seed(42)

    print("="*70)
    print("STOCK_RECONCILER.PY PERFORMANCE BENCHMARK")
    print("="*70)

    benchmark_label_functions(2000)
    benchmark_reconcile()
    benchmark_reconcile_frames()

    print("\n" + "="*70)
    print("BENCHMARK COMPLETE")
    print("="*70)


if __name__ == '__main__':
    main()
