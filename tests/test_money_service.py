from __future__ import annotations

import unittest
from decimal import Decimal

from trade_portal.services.money_service import (
    LineItem,
    build_invoice_items,
    compute_invoice_totals,
    compute_line_total,
    format_currency,
    to_decimal,
)


class ComputeLineTotalTests(unittest.TestCase):
    def test_total_is_quantity_times_unit_price(self) -> None:
        cases = [
            (Decimal('0'), Decimal('100000')),
            (Decimal('2'), Decimal('100000')),
            (Decimal('12.5'), Decimal('3.2')),
            (Decimal('1000'), Decimal('0')),
        ]
        for quantity, unit_price in cases:
            with self.subTest(quantity=quantity, unit_price=unit_price):
                self.assertEqual(compute_line_total(quantity, unit_price), quantity * unit_price)

    def test_float_inputs_do_not_carry_binary_noise(self) -> None:
        self.assertEqual(compute_line_total(0.1, 3), Decimal('0.3'))

    def test_invalid_number_raises_value_error(self) -> None:
        with self.assertRaises(ValueError):
            compute_line_total('two', 5)


class ComputeInvoiceTotalsTests(unittest.TestCase):
    def test_ten_percent_tax_on_single_item(self) -> None:
        totals = compute_invoice_totals(
            [{'description': 'Nickel ore', 'quantity': 2, 'unit_price': 100000, 'total': 200000}],
            10,
            0,
        )

        self.assertEqual(totals.subtotal, Decimal('200000'))
        self.assertEqual(totals.tax_amount, Decimal('20000'))
        self.assertEqual(totals.total, Decimal('220000'))

    def test_total_equals_sum_of_line_totals_without_tax_or_fee(self) -> None:
        items = build_invoice_items(
            [
                {'description': 'Coal', 'quantity': '3', 'unit_price': '1500000'},
                {'description': 'Freight', 'quantity': '1', 'unit_price': '250000'},
                {'description': 'Surveyor', 'quantity': '2.5', 'unit_price': '40000'},
            ]
        )

        totals = compute_invoice_totals(items, 0, 0)

        self.assertEqual(totals.total, sum((item.total for item in items), Decimal('0')))
        self.assertEqual(totals.tax_amount, Decimal('0'))

    def test_incomplete_items_are_ignored(self) -> None:
        totals = compute_invoice_totals(
            [
                {'description': 'Coal', 'quantity': 1, 'unit_price': 1000},
                {'description': '   ', 'quantity': 5, 'unit_price': 1000},
                {'description': 'Zero quantity', 'quantity': 0, 'unit_price': 1000},
                {'description': 'Negative price', 'quantity': 1, 'unit_price': -50},
            ],
        )

        self.assertEqual(totals.subtotal, Decimal('1000'))
        self.assertEqual(totals.total, Decimal('1000'))

    def test_extra_fee_is_added_after_tax(self) -> None:
        totals = compute_invoice_totals([{'description': 'Coal', 'quantity': 1, 'unit_price': 1000}], 11, 500)

        self.assertEqual(totals.tax_amount, Decimal('110'))
        self.assertEqual(totals.total, Decimal('1610'))

    def test_empty_item_list_totals_to_fee(self) -> None:
        totals = compute_invoice_totals([], 10, 750)

        self.assertEqual(totals.subtotal, Decimal('0'))
        self.assertEqual(totals.total, Decimal('750'))


class LineItemTests(unittest.TestCase):
    def test_build_restamps_stale_totals(self) -> None:
        items = build_invoice_items([{'description': 'Coal', 'quantity': '2', 'unit_price': '10', 'total': '999'}])

        self.assertEqual(items[0].total, Decimal('20'))

    def test_as_dict_stores_amounts_as_strings(self) -> None:
        item = LineItem(description='Coal', quantity=Decimal('2'), unit_price=Decimal('10'), total=Decimal('20'))

        self.assertEqual(
            item.as_dict(),
            {'description': 'Coal', 'quantity': '2', 'unit_price': '10', 'total': '20'},
        )


class FormatCurrencyTests(unittest.TestCase):
    def test_formats_rupiah_without_fraction(self) -> None:
        self.assertEqual(format_currency(Decimal('220000')), 'Rp 220.000')
        self.assertEqual(format_currency(Decimal('1234567.6')), 'Rp 1.234.568')
        self.assertEqual(format_currency(0), 'Rp 0')

    def test_negative_amounts_keep_sign(self) -> None:
        self.assertEqual(format_currency(-1500), '-Rp 1.500')

    def test_blank_amount_is_zero(self) -> None:
        self.assertEqual(to_decimal(''), Decimal('0'))
        self.assertEqual(to_decimal(None), Decimal('0'))


if __name__ == '__main__':
    unittest.main()
