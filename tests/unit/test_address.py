"""Street number stripping tests."""

import pytest

from psyd.houses.address import strip_street_number


@pytest.mark.parametrize(
    ("street", "expected"),
    [
        ("37 Gould Ave", "Gould Ave"),
        ("14A Main St", "Main St"),
        ("Gould Ave", "Gould Ave"),
        ("2/14 Smith St", "2/14 Smith St"),
        ("  ", "  "),
    ],
)
def test_strip_street_number(street, expected):
    assert strip_street_number(street) == expected


@pytest.mark.parametrize("street", [None, ""])
def test_missing_street_is_empty(street):
    assert strip_street_number(street) == ""
