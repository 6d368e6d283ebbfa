"""Tests for the reference-counted TransportLibrary."""

import threading
import unittest

from curl_cffi import CurlError

from shelly_exporter.errors import InternalError, ProgrammerError
from shelly_exporter.transport import TransportLibrary


class FakeCurl:
    """Stand-in for curl_cffi.Curl tracking its lifecycle."""

    created = []

    def __init__(self):
        self.closed = False
        self.reset_count = 0
        FakeCurl.created.append(self)

    def version(self):
        return b"libcurl/8.0.0 FakeSSL/1.0"

    def reset(self):
        self.reset_count += 1

    def close(self):
        self.closed = True


class TestRefcount(unittest.TestCase):
    """Verify acquire/release bookkeeping."""

    def setUp(self):
        """Reset the fake handle registry."""
        FakeCurl.created = []
        self.library = TransportLibrary(handle_factory=FakeCurl)

    def test_first_acquire_initializes(self):
        """The first acquire probes the version and seeds the pool."""
        self.assertEqual(self.library.refcount, 0)
        self.library.acquire()
        self.assertEqual(self.library.refcount, 1)
        self.assertEqual(self.library.version, "libcurl/8.0.0 FakeSSL/1.0")
        self.assertEqual(self.library.idle_handles, 1)

    def test_nested_acquire_initializes_once(self):
        """Later acquires only bump the count."""
        self.library.acquire()
        self.library.acquire()
        self.assertEqual(self.library.refcount, 2)
        self.assertEqual(len(FakeCurl.created), 1)

    def test_last_release_closes_handles(self):
        """Handles are closed only when the count drops to zero."""
        self.library.acquire()
        self.library.acquire()
        self.library.release()
        self.assertFalse(FakeCurl.created[0].closed)
        self.library.release()
        self.assertTrue(FakeCurl.created[0].closed)
        self.assertEqual(self.library.idle_handles, 0)

    def test_over_release_raises(self):
        """Releasing more than acquired is a programming error."""
        with self.assertRaises(ProgrammerError):
            self.library.release()

    def test_reinitializes_after_teardown(self):
        """The library may be acquired again after a full release."""
        self.library.acquire()
        self.library.release()
        self.library.acquire()
        self.assertEqual(self.library.refcount, 1)
        self.assertEqual(len(FakeCurl.created), 2)

    def test_concurrent_acquire_release_balances(self):
        """Many threads acquiring and releasing leave the count at zero."""

        def worker():
            for _ in range(50):
                self.library.acquire()
                self.library.release()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(self.library.refcount, 0)
        self.assertTrue(all(c.closed for c in FakeCurl.created))


class TestHandles(unittest.TestCase):
    """Verify handle checkout and return."""

    def setUp(self):
        """Reset the fake handle registry."""
        FakeCurl.created = []
        self.library = TransportLibrary(handle_factory=FakeCurl)

    def test_handle_requires_acquire(self):
        """Borrowing before acquire is a programming error."""
        with self.assertRaises(ProgrammerError):
            with self.library.handle():
                pass

    def test_handle_is_reset_and_reused(self):
        """A returned handle is reset and handed out again."""
        self.library.acquire()
        with self.library.handle() as first:
            pass
        with self.library.handle() as second:
            pass
        self.assertIs(first, second)
        self.assertEqual(first.reset_count, 2)
        self.assertEqual(self.library.idle_handles, 1)

    def test_concurrent_borrowers_get_distinct_handles(self):
        """Two transfers in flight never share a handle."""
        self.library.acquire()
        with self.library.handle() as first:
            with self.library.handle() as second:
                self.assertIsNot(first, second)
        self.assertEqual(self.library.idle_handles, 2)

    def test_handle_returned_after_teardown_is_closed(self):
        """A handle returned after the last release is closed, not pooled."""
        self.library.acquire()
        with self.library.handle() as curl:
            self.library.release()
        self.assertTrue(curl.closed)
        self.assertEqual(self.library.idle_handles, 0)

    def test_handle_creation_failure_is_internal_error(self):
        """A failing factory surfaces as InternalError."""

        def broken_factory():
            raise CurlError("curl_easy_init failed")

        library = TransportLibrary(handle_factory=broken_factory)
        with self.assertRaises(InternalError):
            library.acquire()
        self.assertEqual(library.refcount, 0)


if __name__ == "__main__":
    unittest.main()
