from __future__ import annotations

import tempfile
import unittest

from trade_portal.services.errors import StorageError
from trade_portal.services.local_object_storage import LocalObjectStorage
from trade_portal.services.object_storage import path_from_public_url

BASE_URL = 'http://portal.test/storage/v1/object/public'


class LocalObjectStorageTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.storage = LocalObjectStorage(root=self.tmp.name, public_base_url=BASE_URL)

    def test_upload_list_and_remove(self) -> None:
        self.storage.upload(bucket='documents', path='7/a.pdf', content=b'%PDF', content_type='application/pdf')
        self.storage.upload(bucket='documents', path='8/b.pdf', content=b'%PDF', content_type='application/pdf')

        self.assertEqual(self.storage.list(bucket='documents'), ['7/a.pdf', '8/b.pdf'])
        self.assertEqual(self.storage.list(bucket='documents', prefix='8/'), ['8/b.pdf'])

        self.storage.remove(bucket='documents', paths=['7/a.pdf', '7/missing.pdf'])

        self.assertEqual(self.storage.list(bucket='documents'), ['8/b.pdf'])

    def test_upload_refuses_to_overwrite(self) -> None:
        self.storage.upload(bucket='documents', path='a.txt', content=b'1', content_type='text/plain')

        with self.assertRaises(StorageError):
            self.storage.upload(bucket='documents', path='a.txt', content=b'2', content_type='text/plain')

    def test_paths_cannot_escape_the_bucket(self) -> None:
        with self.assertRaises(StorageError):
            self.storage.upload(bucket='documents', path='../other/x.txt', content=b'1', content_type='text/plain')

    def test_public_url_round_trips_to_object_path(self) -> None:
        url = self.storage.public_url(bucket='shipment-documents', path='3/bill of lading.pdf')

        self.assertEqual(url, f'{BASE_URL}/shipment-documents/3/bill%20of%20lading.pdf')
        self.assertEqual(path_from_public_url(url, bucket='shipment-documents'), '3/bill of lading.pdf')
        self.assertIsNone(path_from_public_url(url, bucket='documents'))

    def test_unknown_bucket_lists_empty(self) -> None:
        self.assertEqual(self.storage.list(bucket='nothing-here'), [])


if __name__ == '__main__':
    unittest.main()
