from __future__ import annotations

import unittest

from trade_portal.auth import Feature, can_access, is_admin_role, visible_features
from trade_portal.models import UserRole
from trade_portal.security.sessions import is_exempt_path


class RoleAccessTests(unittest.TestCase):
    def test_admin_sees_every_feature(self) -> None:
        self.assertEqual(visible_features(UserRole.ADMIN), list(Feature))
        self.assertTrue(is_admin_role(UserRole.ADMIN))

    def test_staff_sees_dashboard_documents_and_shipments(self) -> None:
        self.assertEqual(
            visible_features(UserRole.STAFF),
            [Feature.DASHBOARD, Feature.DOCUMENTS, Feature.SHIPMENTS],
        )
        for feature in (Feature.INVOICES, Feature.STOCK, Feature.USERS):
            with self.subTest(feature=feature):
                self.assertFalse(can_access(UserRole.STAFF, feature))

    def test_unknown_role_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            is_admin_role('owner')

    def test_exempt_paths(self) -> None:
        self.assertTrue(is_exempt_path('/login'))
        self.assertTrue(is_exempt_path('/api/health'))
        self.assertTrue(is_exempt_path('/storage/v1/object/public/documents/1/a.pdf'))
        self.assertFalse(is_exempt_path('/invoices'))
        self.assertFalse(is_exempt_path('/api/dashboard'))


if __name__ == '__main__':
    unittest.main()
