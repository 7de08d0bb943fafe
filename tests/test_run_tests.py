"""
Test runner area filter tests.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import unittest


class TestRunTestsAreas(unittest.TestCase):

    def test_every_area_names_an_existing_module(self):
        import run_tests
        for modules in run_tests.AREAS.values():
            for module in modules:
                self.assertTrue(os.path.isfile(os.path.join(run_tests.TESTS_DIR, module + ".py")), module)

    def test_area_selects_only_its_modules(self):
        import run_tests
        suite = run_tests.build_suite(["brow"])
        ids = [t.id() for t in run_tests._iter_tests(suite)]
        self.assertTrue(ids)
        for test_id in ids:
            self.assertIn(test_id.split(".")[0], ("test_brow_baseline", "test_brow_state_machine"))

    def test_substring_filter(self):
        import run_tests
        suite = run_tests.build_suite(["hud"])
        ids = [t.id() for t in run_tests._iter_tests(suite)]
        self.assertTrue(ids)
        self.assertTrue(all("hud" in i.lower() for i in ids))

    def test_unknown_filter_selects_nothing(self):
        import run_tests
        self.assertEqual(run_tests.build_suite(["no_such_area_xyz"]).countTestCases(), 0)


if __name__ == "__main__":
    unittest.main()
