import numpy as np
import pytest

from krcalib.calib import (
    INVALID_GAIN,
    GainCalculator,
    GainRecord,
    SectorAverager,
    UndefinedSectorAverageError,
    CalibrationConfig,
    sanitize_gain
)
from krcalib.utils import GeometryId


@pytest.fixture
def calculator():
    return GainCalculator(0.5, 1.5)


def test_sector_averager():

    averager = SectorAverager()
    for value in [90., 100., 110.]:
        averager.add_value((1, 1), value)
    averager.add_value((1, 2), 50.)

    assert averager.average((1, 1)) == pytest.approx(100.)
    assert averager.average((1, 2)) == 50.
    assert averager.count((1, 1)) == 3
    assert averager.count((1, 3)) == 0
    assert sorted(averager.keys()) == [(1, 1), (1, 2)]


def test_undefined_sector_average():
    with pytest.raises(UndefinedSectorAverageError):
        SectorAverager().average((1, 1))


def test_normalization_identity(calculator):

    record = calculator.compute_gain(100., 100.)
    assert record.gain == 1.
    assert record.acceptable
    assert record.table_value == 1.

    record = calculator.compute_gain(100., 80., geometry_id=GeometryId(1, 1, 1, 1))
    assert record.gain == 1.25
    assert record.raw_peak_position == 80.
    assert record.geometry_id == GeometryId(1, 1, 1, 1)


def test_update_gain(calculator):

    record = calculator.compute_gain(100., 50., prior_gain=2.)
    assert record.gain == 4.
    # outside of the acceptable range, the audit value is kept
    assert not record.acceptable
    assert record.table_value == INVALID_GAIN


@pytest.mark.parametrize('pad_peak', [0., -0., None, np.float64(0.), np.nan])
def test_sanitized_gain(calculator, pad_peak):

    record = calculator.compute_gain(100., pad_peak)
    assert record.gain == 0.
    assert not record.acceptable
    assert record.table_value == INVALID_GAIN


def test_infinite_prior_gain(calculator):
    assert calculator.compute_gain(100., 100., prior_gain=np.inf).gain == 0.


@pytest.mark.parametrize('gain, acceptable', [
    (0.5, False),
    (0.5000001, True),
    (1., True),
    (1.4999999, True),
    (1.5, False),
    (0., False),
])
def test_acceptance_bounds_are_strict(calculator, gain, acceptable):
    assert calculator.is_acceptable(gain) == acceptable


def test_acceptance_of_computed_gain(calculator):
    assert not calculator.compute_gain(150., 100.).acceptable
    assert calculator.compute_gain(149., 100.).acceptable


def test_sanitize_gain():
    assert sanitize_gain(np.nan) == 0.
    assert sanitize_gain(np.inf) == 0.
    assert sanitize_gain(-np.inf) == 0.
    assert sanitize_gain(None) == 0.
    assert sanitize_gain(0.8) == 0.8


def test_calculator_from_config():

    calculator = GainCalculator.from_config(
        CalibrationConfig(tpc_list=['VTPC1'], min_acceptable_gain=0.8, max_acceptable_gain=1.2)
        )
    assert calculator.min_acceptable_gain == 0.8
    assert calculator.max_acceptable_gain == 1.2


def test_gain_record_table_value():
    gid = GeometryId(1, 1, 1, 1)
    assert GainRecord(gid, 100., 0.9, True).table_value == 0.9
    assert GainRecord(gid, 100., 0.3, False).table_value == INVALID_GAIN
