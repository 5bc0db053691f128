from __future__ import annotations

import unittest

from pydantic import ValidationError

from trade_portal.schemas import InvoiceForm, StockAdjustForm, validation_messages


def _invoice_data(**overrides) -> dict:
    data = {
        'customer_name': 'PT Sumber Mineral',
        'customer_email': 'finance@sumber.example',
        'issue_date': '2025-03-01',
        'due_date': '2025-03-31',
        'items': [{'description': 'Nickel ore', 'quantity': '2', 'unit_price': '100000'}],
        'tax_percent': '10',
    }
    data.update(overrides)
    return data


class ValidationMessageTests(unittest.TestCase):
    def _messages(self, schema, data) -> dict[str, str]:
        with self.assertRaises(ValidationError) as ctx:
            schema.model_validate(data)
        return validation_messages(ctx.exception)

    def test_invoice_constraints_use_field_messages(self) -> None:
        messages = self._messages(
            InvoiceForm,
            _invoice_data(
                tax_percent='150',
                items=[{'description': 'Nickel ore', 'quantity': '0', 'unit_price': '-1'}],
            ),
        )

        self.assertEqual(messages['tax_percent'], 'Tax percent must be between 0 and 100')
        self.assertEqual(messages['items.0.quantity'], 'Quantity must be greater than 0')
        self.assertEqual(messages['items.0.unit_price'], 'Unit price must be 0 or greater')

    def test_missing_items_and_blank_customer(self) -> None:
        messages = self._messages(InvoiceForm, _invoice_data(customer_name='   ', items=[]))

        self.assertEqual(messages['customer_name'], 'Customer name is required')
        self.assertEqual(messages['items'], 'At least one item is required')

    def test_validator_message_is_passed_through(self) -> None:
        messages = self._messages(InvoiceForm, _invoice_data(customer_email='not-an-email'))

        self.assertEqual(messages['customer_email'], 'Valid email is required')

    def test_unmapped_field_keeps_default_message(self) -> None:
        messages = self._messages(StockAdjustForm, {'adjustment': 'lots', 'reason': ''})

        self.assertEqual(messages['reason'], 'Reason is required')
        self.assertTrue(messages['adjustment'])

    def test_valid_invoice_parses(self) -> None:
        form = InvoiceForm.model_validate(_invoice_data())

        self.assertEqual(len(form.items), 1)
        self.assertEqual(form.customer_email, 'finance@sumber.example')


if __name__ == '__main__':
    unittest.main()
