import numpy as np

import validation
from config import Config


def test_quick_suite_passes(capsys):
    assert validation.run_validation_suite(Config(), quick=True) is True
    assert "All validation tests passed!" in capsys.readouterr().out


def test_brute_force_reference():
    values = np.array([[1.0, 4.0, 0.5],
                       [3.0, 2.0, 0.5]])
    total, path = validation.brute_force_assignment(values)
    assert total == 1.5
    assert path == (0, 2)


def test_failed_result_prints_details(capsys):
    suite = validation.ValidationSuite([
        validation.ValidationResult("Pop Order", True, "ok"),
        validation.ValidationResult("Determinism", False, "1 differences", {"differences": 1}),
    ])
    assert not suite.all_passed
    suite.print_summary()
    out = capsys.readouterr().out
    assert "1/2 tests passed" in out
    assert "differences: 1" in out
