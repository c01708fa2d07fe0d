import unittest

from fakes import FakeSession, connection_error, listing_xml

from s3_explorer.core import collect_keys, get_http_session, list_keys, parse_listing
from s3_explorer.errors import ListingError, diagnostics_logger

BUCKET = "https://bucket.s3.amazonaws.com"
OTHER = "https://other.s3.amazonaws.com"


class ParseListingTest(unittest.TestCase):
    def test_namespaced_document(self):
        payload = listing_xml(["a.txt", "dir/b.csv", "dir/sub/c.json"])
        self.assertEqual(parse_listing(payload), ["a.txt", "dir/b.csv", "dir/sub/c.json"])

    def test_bare_document(self):
        payload = listing_xml(["x", "y"], namespaced=False)
        self.assertEqual(parse_listing(payload), ["x", "y"])

    def test_contents_without_key_is_skipped(self):
        payload = (
            b"<ListBucketResult>"
            b"<Contents><Size>3</Size></Contents>"
            b"<Contents><Key>kept</Key></Contents>"
            b"</ListBucketResult>"
        )
        self.assertEqual(parse_listing(payload), ["kept"])

    def test_common_prefixes_are_not_keys(self):
        payload = (
            b"<ListBucketResult>"
            b"<CommonPrefixes><Prefix>logs/</Prefix></CommonPrefixes>"
            b"<Contents><Key>index.html</Key></Contents>"
            b"</ListBucketResult>"
        )
        self.assertEqual(parse_listing(payload), ["index.html"])

    def test_malformed_xml_raises(self):
        with self.assertRaises(ListingError):
            parse_listing(b"<html><body>not a bucket")


class ListKeysTest(unittest.TestCase):
    def test_truncates_to_limit_in_order(self):
        keys = [f"k{i}" for i in range(10)]
        session = FakeSession({BUCKET: (200, listing_xml(keys))})
        self.assertEqual(list_keys(session, BUCKET, limit=3), ["k0", "k1", "k2"])

    def test_zero_limit_yields_nothing(self):
        session = FakeSession({BUCKET: (200, listing_xml(["a"]))})
        self.assertEqual(list_keys(session, BUCKET, limit=0), [])

    def test_prefix_with_source(self):
        session = FakeSession({BUCKET: (200, listing_xml(["a.txt", "d/b.txt"]))})
        self.assertEqual(
            list_keys(session, BUCKET, prefix_with_source=True),
            [f"{BUCKET}/a.txt", f"{BUCKET}/d/b.txt"],
        )

    def test_non_200_yields_empty(self):
        session = FakeSession({BUCKET: (403, b"<Error><Code>AccessDenied</Code></Error>")})
        self.assertEqual(list_keys(session, BUCKET), [])

    def test_transport_error_yields_empty(self):
        session = FakeSession({BUCKET: connection_error(BUCKET)})
        self.assertEqual(list_keys(session, BUCKET), [])

    def test_bad_xml_is_logged_when_enabled(self):
        session = FakeSession({BUCKET: (200, b"{not xml}")})
        log = diagnostics_logger("s3_explorer.core", enabled=True)
        with self.assertLogs("s3_explorer.core", level="WARNING") as cm:
            self.assertEqual(list_keys(session, BUCKET, log=log), [])
        self.assertIn("Error parsing XML", cm.output[0])


class CollectKeysTest(unittest.TestCase):
    def test_bad_source_does_not_abort_others(self):
        session = FakeSession(
            {
                BUCKET: connection_error(BUCKET),
                OTHER: (200, listing_xml(["backup.zip", "db.sql"])),
            }
        )
        keys = collect_keys(session, [BUCKET, OTHER], limit=50)
        self.assertEqual(keys, [f"{OTHER}/backup.zip", f"{OTHER}/db.sql"])
        self.assertEqual(session.calls, [BUCKET, OTHER])

    def test_limit_applies_per_source(self):
        session = FakeSession(
            {
                BUCKET: (200, listing_xml(["a", "b", "c"])),
                OTHER: (200, listing_xml(["d", "e"])),
            }
        )
        keys = collect_keys(session, [BUCKET, OTHER], limit=1, prefix_with_source=False)
        self.assertEqual(keys, ["a", "d"])


class SessionTest(unittest.TestCase):
    def test_user_agent_header(self):
        session = get_http_session("scanner/1.0")
        self.assertEqual(session.headers["User-Agent"], "scanner/1.0")
        self.assertNotIn("Authorization", session.headers)


if __name__ == "__main__":
    unittest.main()
