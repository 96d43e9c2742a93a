#!/usr/bin/env python3
"""
Test runner for FlashQuiz.
Runs all unit and integration tests and prints a summary report.
"""
import sys
import time
import unittest
from pathlib import Path

# Make the project root importable when run as a script
sys.path.insert(0, str(Path(__file__).parent.parent))

TEST_MODULES = {
    'storage': ['tests.test_storage', 'tests.test_result_store'],
    'generation': ['tests.test_choice_generator', 'tests.test_pair_puzzle'],
    'engine': ['tests.test_quiz_engine'],
    'controller': ['tests.test_quiz_controller'],
    'loader': ['tests.test_deck_loader'],
    'config': ['tests.test_config_manager'],
    'integration': ['tests.test_integration_comprehensive'],
}


def _load(module_names):
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()
    for module_name in module_names:
        try:
            suite.addTest(loader.loadTestsFromName(module_name))
            print(f"✓ Loaded tests from {module_name}")
        except Exception as e:
            print(f"✗ Failed to load {module_name}: {e}")
            return None
    return suite


def run_test_suite(module_names):
    """Run the given test modules and print a summary report."""
    print("=" * 70)
    print("FlashQuiz - Test Suite")
    print("=" * 70)

    suite = _load(module_names)
    if suite is None:
        return False

    runner = unittest.TextTestRunner(verbosity=2, stream=sys.stdout, buffer=True)
    start_time = time.time()
    result = runner.run(suite)
    end_time = time.time()

    total_tests = result.testsRun
    failures = len(result.failures)
    errors = len(result.errors)
    skipped = len(result.skipped)
    passed = total_tests - failures - errors - skipped

    print("\n" + "=" * 70)
    print("Test Summary Report")
    print("=" * 70)
    print(f"Total Tests Run: {total_tests}")
    print(f"Passed: {passed}")
    print(f"Failed: {failures}")
    print(f"Errors: {errors}")
    print(f"Skipped: {skipped}")
    print(f"Success Rate: {(passed/total_tests)*100:.1f}%" if total_tests > 0 else "N/A")
    print(f"Execution Time: {end_time - start_time:.2f} seconds")

    return failures == 0 and errors == 0


if __name__ == '__main__':
    if len(sys.argv) > 1:
        category = sys.argv[1]
        if category not in TEST_MODULES:
            print(f"Unknown category: {category}")
            print(f"Available categories: {', '.join(TEST_MODULES.keys())}")
            sys.exit(1)
        modules = TEST_MODULES[category]
    else:
        modules = [name for names in TEST_MODULES.values() for name in names]
    sys.exit(0 if run_test_suite(modules) else 1)
