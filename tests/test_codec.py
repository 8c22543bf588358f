from datetime import datetime, timezone
import unittest

from gcs_remote.codec import (
    CatalogDecodeError,
    decode_catalog_page,
    decode_object,
    encode_object,
    parse_size,
    parse_timestamp,
)
from gcs_remote.models import Listing, ObjectEntry

FULL_RECORD = {
    "kind": "storage#object",
    "name": "photos/cat.jpg",
    "bucket": "bucket-one",
    "generation": "1714557600123456",
    "metageneration": "1",
    "contentType": "image/jpeg",
    "storageClass": "STANDARD",
    "size": "20480",
    "md5Hash": "1B2M2Y8AsgTpgAmY7PhCfg==",
    "crc32c": "AAAAAA==",
    "etag": "CKih16GjycICEAE=",
    "timeCreated": "2024-05-01T10:00:00.123Z",
    "updated": "2024-05-01T10:00:00.123Z",
    "metadata": {"camera": "x100"},
}


class CodecTests(unittest.TestCase):
    def test_decodes_full_object_record(self):
        entry = decode_object(FULL_RECORD)

        self.assertEqual("photos/cat.jpg", entry.key)
        self.assertEqual(20480, entry.size_bytes)
        self.assertEqual(datetime(2024, 5, 1, 10, 0, 0, 123000, tzinfo=timezone.utc), entry.last_modified)
        self.assertEqual("CKih16GjycICEAE=", entry.etag)
        self.assertEqual("image/jpeg", entry.content_type)
        self.assertEqual({"camera": "x100"}, dict(entry.metadata))
        self.assertEqual(1714557600123456, entry.generation)
        self.assertEqual("STANDARD", entry.storage_class)

    def test_minimal_record_uses_defaults(self):
        entry = decode_object({"name": "a"})

        self.assertEqual(0, entry.size_bytes)
        self.assertIsNone(entry.last_modified)
        self.assertEqual("", entry.etag)
        self.assertEqual({}, dict(entry.metadata))

    def test_rejects_records_without_name(self):
        for record in ({}, {"name": ""}, {"name": 5}, ["name"]):
            with self.assertRaises(CatalogDecodeError):
                decode_object(record)

    def test_parse_size(self):
        self.assertEqual(12, parse_size("12"))
        self.assertEqual(12, parse_size(12))
        self.assertEqual(0, parse_size(None))
        self.assertEqual(0, parse_size("twelve"))
        self.assertEqual(0, parse_size("-4"))
        self.assertEqual(0, parse_size(True))

    def test_parse_timestamp(self):
        self.assertEqual(
            datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc), parse_timestamp("2024-01-02T03:04:05Z")
        )
        self.assertEqual(
            datetime(2024, 1, 2, 3, 4, 5, 120000, tzinfo=timezone.utc),
            parse_timestamp("2024-01-02T03:04:05.12Z"),
        )
        self.assertIsNone(parse_timestamp("yesterday"))
        self.assertIsNone(parse_timestamp(None))

    def test_encode_object_mirrors_decode(self):
        entry = decode_object(FULL_RECORD)

        payload = encode_object(entry)

        self.assertEqual("photos/cat.jpg", payload["name"])
        self.assertEqual("20480", payload["size"])
        self.assertEqual("2024-05-01T10:00:00.123000Z", payload["updated"])
        self.assertEqual(entry, decode_object(payload))

    def test_decode_catalog_page(self):
        page = decode_catalog_page(
            b'{"items": [{"name": "a"}], "prefixes": ["dir/"], "nextPageToken": "tok"}'
        )

        self.assertEqual([{"name": "a"}], page.items)
        self.assertEqual(["dir/"], page.prefixes)
        self.assertEqual("tok", page.next_page_token)
        self.assertFalse(page.is_terminal)

    def test_catalog_page_without_items_is_terminal(self):
        page = decode_catalog_page({"kind": "storage#objects", "nextPageToken": ""})

        self.assertEqual([], page.items)
        self.assertTrue(page.is_terminal)

    def test_decode_catalog_page_rejects_bad_shapes(self):
        for payload in (b"[]", b"nope", b'{"items": {}}', b'{"prefixes": {}}', b'{"nextPageToken": 3}'):
            with self.assertRaises(CatalogDecodeError):
                decode_catalog_page(payload)

    def test_null_items_and_prefixes_decode_as_empty(self):
        page = decode_catalog_page(b'{"items": null, "prefixes": null}')

        self.assertEqual([], page.items)
        self.assertEqual([], page.prefixes)

    def test_null_metadata_values_are_dropped(self):
        entry = decode_object({"name": "a", "metadata": {"owner": "ops", "retired": None}})

        self.assertEqual({"owner": "ops"}, dict(entry.metadata))


class ModelTests(unittest.TestCase):
    def test_object_entry_requires_key(self):
        with self.assertRaises(ValueError):
            ObjectEntry(key="")

    def test_listing_merge_preserves_arrival_order(self):
        first = Listing(keys=[ObjectEntry("b"), ObjectEntry("a")], common_prefixes=["x/"])
        second = Listing(keys=[ObjectEntry("c")], common_prefixes=["y/"])

        merged = Listing.merge([first, second])

        self.assertEqual(["b", "a", "c"], [entry.key for entry in merged.keys])
        self.assertEqual(["x/", "y/"], merged.common_prefixes)


if __name__ == "__main__":
    unittest.main()
