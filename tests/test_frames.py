"""
Tests for the DataFrame boundary:
- Column validation (case-insensitive, structured MissingColumnsError)
- Stock names inline or joined from a descriptions table
- reconcile_frames() export columns, stats and warnings
- Diagnostic columns and compute_match_summary()
"""
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import logging

import pandas as pd
import pytest

from stock_reconciler import (
    COL_BRAND, COL_CLOSEST_PRODUCT, COL_CLOSEST_SCORE, COL_COLOR, COL_GRADE_COUNTS,
    COL_MATCH_TYPE, COL_MATCHING_PRODUCTS, COL_MODEL_KEY, COL_QUANTITY, COL_STORAGE,
    MATCH_TYPE_MODEL, MATCH_TYPE_NAME, MATCH_TYPE_NOT_MATCHED, OUTPUT_COLUMNS,
    MissingColumnsError, compute_match_summary, records_from_distributor_frame,
    records_from_stock_frame, reconcile_frames, validate_columns,
)


@pytest.fixture
def df_stock():
    return pd.DataFrame([
        {'model': 'SM-A546', 'name': 'Galaxy A54 5G (128GB) [Brand New]', 'quantity': 10},
        {'model': '', 'name': 'iPhone 13 Pro (256GB) [Grade A]', 'quantity': 3},
        {'model': None, 'name': 'Galaxy S23 (256GB) [Brand New]', 'quantity': 'n/a'},
    ])


@pytest.fixture
def df_distributor():
    return pd.DataFrame([
        {'Product': 'SAMSUNG GALAXY A54 5G SM-A546 128GB BLACK', 'Grade': 'A', 'Qty': 5},
        {'Product': 'IPHONE 13 PRO 256GB - PRISTINE', 'Grade': 'A', 'Qty': 1},
        {'Product': 'Samsung Galaxy Buds Pro Case', 'Grade': '', 'Qty': 2},
        {'Product': None, 'Grade': '', 'Qty': 0},
    ])


class TestValidation:

    def test_resolves_columns_case_insensitively(self):
        df = pd.DataFrame(columns=['MODEL', ' Name ', 'QTY'])
        assert validate_columns(df, [('model',), ('name',), ('quantity', 'Qty')], 'stock') == \
            ['MODEL', ' Name ', 'QTY']

    def test_missing_stock_quantity(self):
        df = pd.DataFrame(columns=['model', 'Name'])
        with pytest.raises(MissingColumnsError) as exc:
            records_from_stock_frame(df)
        assert exc.value.table == 'stock'
        assert exc.value.missing == ['quantity|Qty']
        assert isinstance(exc.value, ValueError)

    def test_missing_stock_name_without_descriptions(self):
        df = pd.DataFrame(columns=['model', 'product_id', 'quantity'])
        with pytest.raises(MissingColumnsError) as exc:
            records_from_stock_frame(df)
        assert exc.value.missing == ['Name']

    def test_missing_description_name(self):
        df = pd.DataFrame(columns=['model', 'product_id', 'quantity'])
        df_desc = pd.DataFrame(columns=['product_id'])
        with pytest.raises(MissingColumnsError) as exc:
            records_from_stock_frame(df, df_desc)
        assert exc.value.table == 'descriptions'
        assert exc.value.missing == ['name']

    def test_missing_distributor_product(self):
        with pytest.raises(MissingColumnsError) as exc:
            records_from_distributor_frame(pd.DataFrame(columns=['Name', 'Qty']))
        assert exc.value.table == 'distributor'
        assert exc.value.missing == ['Product']

    def test_reports_every_missing_column(self):
        with pytest.raises(MissingColumnsError) as exc:
            records_from_stock_frame(pd.DataFrame(columns=['sku']))
        assert exc.value.missing == ['model', 'Name', 'quantity|Qty']
        assert 'stock' in str(exc.value)


class TestStockRecords:

    def test_inline_names(self, df_stock):
        records, stats = records_from_stock_frame(df_stock)

        assert [r.quantity for r in records] == [10, 3, 0]
        assert [r.model_code for r in records] == ['SM-A546', None, None]
        assert stats['stock_records'] == 3
        assert stats['without_model'] == 2
        assert stats['warnings'] == []

    def test_names_joined_from_descriptions(self):
        df_stock = pd.DataFrame({
            'model': ['SM-A546', '', 'XYZ1'],
            'product_id': [101, 102, 999],
            'quantity': [10, 3, 1],
        })
        df_desc = pd.DataFrame({
            'product_id': [101, 102, 102],
            'name': ['Galaxy A54 5G (128GB) [Brand New]', 'iPhone 13 Pro (256GB) [Grade A]', 'Duplicate'],
        })

        records, stats = records_from_stock_frame(df_stock, df_desc)

        assert [r.raw_label for r in records] == [
            'Galaxy A54 5G (128GB) [Brand New]', 'iPhone 13 Pro (256GB) [Grade A]']
        assert [r.product_id for r in records] == ['101', '102']
        assert stats['skipped_no_label'] == 1
        assert len(stats['warnings']) == 2

    def test_ungraded_rows_warned(self):
        df = pd.DataFrame({'model': ['SM-S911'], 'Name': ['Galaxy S23 (128GB) [Grade C]'], 'Qty': [4]})

        records, stats = records_from_stock_frame(df)

        assert records[0].grade is None
        assert stats['without_grade'] == 1
        assert any('grade' in w for w in stats['warnings'])


class TestReconcileFrames:

    def test_export_columns(self, df_stock, df_distributor):
        df, stats = reconcile_frames(df_stock, df_distributor)

        assert len(df) == len(df_distributor)
        for col in ['Product', 'Grade', 'Qty'] + OUTPUT_COLUMNS:
            assert col in df.columns
        assert df[COL_MATCH_TYPE].tolist() == [
            MATCH_TYPE_MODEL, MATCH_TYPE_NAME, MATCH_TYPE_NOT_MATCHED, MATCH_TYPE_NOT_MATCHED]
        assert df[COL_QUANTITY].tolist() == [10, 3, 0, 0]
        assert df[COL_GRADE_COUNTS].tolist() == [
            'BN:10,GA:0,GB:0,OB:0,LN:0', 'BN:0,GA:3,GB:0,OB:0,LN:0', '', '']
        assert df[COL_MATCHING_PRODUCTS].iloc[1] == 'iPhone 13 Pro (256GB) [Grade A]'

        assert stats['distributor_rows'] == 4
        assert stats['model_matches'] == 1
        assert stats['name_matches'] == 1
        assert stats['flexible_matches'] == 0
        assert stats['unmatched'] == 2

    def test_with_descriptions_table(self):
        df_stock = pd.DataFrame({'model': ['SM-A546'], 'product_id': ['101'], 'quantity': [10]})
        df_desc = pd.DataFrame({'product_id': ['101'], 'name': ['Galaxy A54 5G (128GB) [Brand New]']})
        df_dist = pd.DataFrame({'Product': ['SAMSUNG GALAXY A54 5G SM-A546 128GB BLACK']})

        df, _ = reconcile_frames(df_stock, df_dist, df_desc)

        assert df[COL_MATCH_TYPE].tolist() == [MATCH_TYPE_MODEL]
        assert df[COL_GRADE_COUNTS].tolist() == ['BN:10,GA:0,GB:0,OB:0,LN:0']

    def test_suppressed_groups_counted(self):
        df_stock = pd.DataFrame({'model': ['SM-S911'], 'Name': ['Galaxy S23 (128GB) [Grade C]'], 'Qty': [5]})
        df_dist = pd.DataFrame({'Product': ['SAMSUNG GALAXY S23 SM-S911 128GB']})

        df, stats = reconcile_frames(df_stock, df_dist)

        assert df[COL_MATCH_TYPE].tolist() == [MATCH_TYPE_NOT_MATCHED]
        assert stats['suppressed_groups'] == 1

    def test_empty_distributor(self, df_stock):
        df, stats = reconcile_frames(df_stock, pd.DataFrame(columns=['Product']))

        assert len(df) == 0
        assert COL_MATCH_TYPE in df.columns
        assert stats['unmatched'] == 0

    def test_logs_summary(self, df_stock, df_distributor, caplog):
        caplog.set_level(logging.INFO, logger='stock_reconciler')

        reconcile_frames(df_stock, df_distributor)

        assert 'Reconciled 3 stock records against 4 distributor rows' in caplog.text

    def test_diagnostic_columns(self):
        df_stock = pd.DataFrame({'model': [''], 'Name': ['Galaxy S23 (256GB) [Brand New]'], 'Qty': [1]})
        df_dist = pd.DataFrame({'Product': ['Samsung Galaxy S23 Ultra 512GB GRPHT']})

        df, _ = reconcile_frames(df_stock, df_dist, diagnostic=True)

        row = df.iloc[0]
        assert row[COL_MATCH_TYPE] == MATCH_TYPE_NOT_MATCHED
        assert row[COL_MODEL_KEY] == 'galaxy s23 ultra'
        assert row[COL_STORAGE] == '512GB'
        assert row[COL_COLOR] == 'grey'
        assert row[COL_BRAND] == 'samsung'
        assert row[COL_CLOSEST_PRODUCT] == 'galaxy s23 256'
        assert row[COL_CLOSEST_SCORE] > 0

    def test_diagnostic_skips_closest_for_matches(self, df_stock, df_distributor):
        df, _ = reconcile_frames(df_stock, df_distributor, diagnostic=True)

        assert df[COL_CLOSEST_PRODUCT].iloc[0] == ''
        assert df[COL_CLOSEST_SCORE].iloc[0] == 0.0


class TestMatchSummary:

    def test_summary(self, df_stock, df_distributor):
        df, _ = reconcile_frames(df_stock, df_distributor)

        summary = compute_match_summary(df)

        assert summary['total_rows'] == 4
        assert summary['model_count'] == 1
        assert summary['model_rate'] == 25.0
        assert summary['name_count'] == 1
        assert summary['not_matched_count'] == 2
        assert summary['matched_rate'] == 50.0
        assert summary['matched_quantity'] == 13

    def test_empty_summary(self):
        summary = compute_match_summary(pd.DataFrame(columns=OUTPUT_COLUMNS))
        assert summary['total_rows'] == 0
        assert summary['matched_rate'] == 0.0
        assert summary['matched_quantity'] == 0
