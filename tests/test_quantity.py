from decimal import Decimal

import pytest

from k8s_dashboard.quantity import (
    QuantityKind,
    kind_for_resource,
    normalize,
    to_bytes,
    to_mebibytes,
    to_milli_cores,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1", 1000.0),
        ("2", 2000.0),
        ("0.5", 500.0),
        ("500m", 500.0),
        ("1000m", 1000.0),
        ("500000u", 500.0),
        ("5000000n", 5.0),
        ("250M", 250.0),  # suffix case is folded for CPU
        (2, 2000.0),
        (Decimal("0.25"), 250.0),
        (("100", "m"), 100.0),
    ],
)
def test_to_milli_cores(raw, expected):
    """Test CPU notations normalize to milli-cores."""
    assert to_milli_cores(raw) == pytest.approx(expected)


@pytest.mark.unit
def test_to_milli_cores_scales_agree():
    assert to_milli_cores("1000m") == to_milli_cores("1")
    assert to_milli_cores("500000u") == to_milli_cores("500m")


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "12xq", "m", "nanm", "inf", True])
def test_to_milli_cores_unparseable_is_zero(raw):
    """Test malformed CPU values resolve to zero instead of raising."""
    assert to_milli_cores(raw) == 0.0


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1Gi", 1073741824.0),
        ("512Mi", 536870912.0),
        ("1Ki", 1024.0),
        ("2Ti", 2 * 1024.0**4),
        ("1K", 1000.0),
        ("1k", 1000.0),
        ("1M", 1e6),
        ("1G", 1e9),
        ("1T", 1e12),
        ("1P", 1e15),
        ("1500m", 1.5),
        ("1024", 1024.0),
        (4096, 4096.0),
        ("10Gi", 10737418240.0),
    ],
)
def test_to_bytes(raw, expected):
    """Test memory notations normalize to bytes."""
    assert to_bytes(raw) == pytest.approx(expected)


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "", "Gi", "lots", "1mi", "1gi"])
def test_to_bytes_unparseable_is_zero(raw):
    # Memory suffixes are case-sensitive; "mi" is not a unit.
    assert to_bytes(raw) == 0.0


@pytest.mark.unit
def test_to_mebibytes():
    assert to_mebibytes("512Mi") == 512.0
    assert to_mebibytes("1Gi") == 1024.0
    assert to_mebibytes(None) == 0.0


@pytest.mark.unit
def test_normalize_dispatches_on_kind():
    assert normalize("1", QuantityKind.CPU) == 1000.0
    assert normalize("1Ki", QuantityKind.MEMORY) == 1024.0
    assert kind_for_resource("cpu") is QuantityKind.CPU
    assert kind_for_resource("memory") is QuantityKind.MEMORY
    assert kind_for_resource("ephemeral-storage") is QuantityKind.MEMORY
