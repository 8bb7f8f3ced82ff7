import pytest

from acr_app.core.config import (
    NOT_APPLICABLE,
    NOT_SUPPORTED,
    PARTIALLY_SUPPORTED,
    SUPPORTED,
    UNKNOWN,
)
from acr_app.core.status import normalize_assessment, to_adherence


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("SUPPORTED", SUPPORTED),
        ("supports", SUPPORTED),
        ("**Partially Supported**", PARTIALLY_SUPPORTED),
        ("PARTIALLY_SUPPORTED - keyboard traps remain", PARTIALLY_SUPPORTED),
        ("NOT_SUPPORTED - major barriers", NOT_SUPPORTED),
        ("Does not support", NOT_SUPPORTED),
        ("NOT_APPLICABLE.", NOT_APPLICABLE),
        ("N/A", NOT_APPLICABLE),
        ("The criterion is partially supported", PARTIALLY_SUPPORTED),
        ("maybe", UNKNOWN),
        ("", UNKNOWN),
        (None, UNKNOWN),
    ],
)
def test_normalize_assessment(raw, expected):
    assert normalize_assessment(raw) == expected


def test_adherence_mapping():
    assert to_adherence("SUPPORTED") == "supports"
    assert to_adherence("partially_supported") == "partially-supports"
    assert to_adherence("NOT_SUPPORTED") == "does-not-support"
    assert to_adherence("NOT_APPLICABLE") == "not-applicable"
    assert to_adherence("REQUIRES_REVIEW") == "not-evaluated"
    assert to_adherence("ERROR") == "not-evaluated"
    assert to_adherence("something else") == "not-evaluated"
    assert to_adherence(None) == "not-evaluated"
