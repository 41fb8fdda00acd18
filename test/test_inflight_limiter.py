"""
Tests for the in-flight limiter.
"""

import unittest

from s3loadgen.common.inflight_limiter import InFlightLimiter


class TestInFlightLimiter(unittest.TestCase):
    """Test InFlightLimiter functionality."""

    def test_acquire_until_limit(self):
        limiter = InFlightLimiter(3)

        self.assertTrue(limiter.try_acquire())
        self.assertTrue(limiter.try_acquire())
        self.assertTrue(limiter.try_acquire())
        self.assertFalse(limiter.try_acquire())

        self.assertEqual(limiter.in_flight(), 3)
        self.assertEqual(limiter.max_permits(), 3)

    def test_release_frees_permit(self):
        limiter = InFlightLimiter(1)

        for _ in range(5):
            self.assertTrue(limiter.try_acquire())
            self.assertFalse(limiter.try_acquire())
            limiter.release()

        self.assertEqual(limiter.in_flight(), 0)

    def test_release_without_acquire(self):
        """Test that an extra release warns and never goes negative."""
        limiter = InFlightLimiter(2)
        with self.assertLogs('s3loadgen.common.inflight_limiter', level='WARNING'):
            limiter.release()
        self.assertEqual(limiter.in_flight(), 0)
        self.assertTrue(limiter.try_acquire())
        self.assertTrue(limiter.try_acquire())
        self.assertFalse(limiter.try_acquire())

    def test_invalid_limit(self):
        with self.assertRaises(ValueError):
            InFlightLimiter(0)
        with self.assertRaises(ValueError):
            InFlightLimiter(-3)

    def test_repr(self):
        limiter = InFlightLimiter(5)
        limiter.try_acquire()
        self.assertEqual(repr(limiter), "InFlightLimiter(in_flight=1/5)")


if __name__ == '__main__':
    unittest.main()
