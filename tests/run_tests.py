#!/usr/bin/env python3
"""
Test runner for mesh_color_clamper test suite.

Runs all unit tests and displays results.
"""

import sys
import unittest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Import all test modules
from tests import (
    test_color,
    test_config,
    test_adjacency,
    test_palette_selector,
    test_remapper,
    test_island_merger,
    test_mesh_io,
    test_texture_quantizer,
    test_json_utils,
    test_summary_writer,
    test_threemf_writer,
    test_color_clamper,
    test_cli
)


def run_tests():
    """Run all tests and return results."""
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    # Add all test modules
    for module in (
        test_color,
        test_config,
        test_adjacency,
        test_palette_selector,
        test_remapper,
        test_island_merger,
        test_mesh_io,
        test_texture_quantizer,
        test_json_utils,
        test_summary_writer,
        test_threemf_writer,
        test_color_clamper,
        test_cli,
    ):
        suite.addTests(loader.loadTestsFromModule(module))

    # Run tests
    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    # Print summary
    print("\n" + "="*70)
    print(f"Tests run: {result.testsRun}")
    print(f"Failures: {len(result.failures)}")
    print(f"Errors: {len(result.errors)}")
    print(f"Skipped: {len(result.skipped)}")

    if result.wasSuccessful():
        print("\n✓ All tests passed!")
        return 0
    else:
        print("\n✗ Some tests failed")
        return 1


if __name__ == '__main__':
    sys.exit(run_tests())
