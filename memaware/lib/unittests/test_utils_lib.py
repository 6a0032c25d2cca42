# memaware/lib/unittests/test_utils_lib.py
import os
import unittest
from unittest.mock import patch

import memaware.lib.utils_lib as utils_lib
from memaware.lib import globals


class TestParseSize(unittest.TestCase):
    def test_megabytes(self):
        self.assertEqual(utils_lib.parse_size("100m"), 104857600)
        self.assertEqual(utils_lib.parse_size("500m"), 524288000)
        self.assertEqual(utils_lib.parse_size("1500M"), 1572864000)

    def test_gigabytes(self):
        self.assertEqual(utils_lib.parse_size("1g"), 1073741824)
        self.assertEqual(utils_lib.parse_size("4g"), 4294967296)
        self.assertEqual(utils_lib.parse_size("1G"), 1073741824)

    def test_plain_numbers_and_suffixes(self):
        self.assertEqual(utils_lib.parse_size("4096"), 4096)
        self.assertEqual(utils_lib.parse_size(4096), 4096)
        self.assertEqual(utils_lib.parse_size("2k"), 2048)
        self.assertEqual(utils_lib.parse_size("100mb"), 104857600)

    def test_invalid(self):
        for value in ("", "m", "10x", "-5m", "1.5g"):
            with self.assertRaises(ValueError, msg=value):
                utils_lib.parse_size(value)
        with self.assertRaises(ValueError):
            utils_lib.parse_size(-1)


class TestFailTest(unittest.TestCase):
    def setUp(self):
        globals.error_list = []

    def tearDown(self):
        globals.error_list = []

    def test_fail_test_records_message(self):
        utils_lib.fail_test("limit not reported")
        self.assertEqual(globals.error_list, ["limit not reported"])

    @patch("memaware.lib.utils_lib.pytest.fail")
    def test_update_test_result_fails_on_errors(self, mock_fail):
        utils_lib.fail_test("first")
        utils_lib.fail_test("second")
        utils_lib.update_test_result()
        mock_fail.assert_called_once()
        self.assertIn("first", mock_fail.call_args[0][0])
        self.assertIn("second", mock_fail.call_args[0][0])

    @patch("memaware.lib.utils_lib.pytest.fail")
    def test_update_test_result_clean(self, mock_fail):
        utils_lib.update_test_result()
        mock_fail.assert_not_called()


class TestHelpers(unittest.TestCase):
    def test_output_excerpt_keeps_tail(self):
        text = "a" * 50 + "TAIL"
        excerpt = utils_lib.output_excerpt(text, max_chars=10)
        self.assertTrue(excerpt.endswith("aaaaaaTAIL"))
        self.assertIn("44 chars omitted", excerpt)

    def test_output_excerpt_short_text_unchanged(self):
        self.assertEqual(utils_lib.output_excerpt("short", max_chars=10), "short")

    def test_env_flag(self):
        with patch.dict(os.environ, {"MEMAWARE_X": "True"}):
            self.assertTrue(utils_lib.env_flag("MEMAWARE_X"))
        with patch.dict(os.environ, {"MEMAWARE_X": "no"}):
            self.assertFalse(utils_lib.env_flag("MEMAWARE_X", default=True))
        with patch.dict(os.environ, {}, clear=True):
            self.assertTrue(utils_lib.env_flag("MEMAWARE_X", default=True))


if __name__ == '__main__':
    unittest.main()
