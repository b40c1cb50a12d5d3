import os

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from krcalib.calib import ClusterEvent, CalibrationConfig, calibration_config
from krcalib.io import load_config
from krcalib.utils import TPCGeometry, load_geometry


RESOURCES = os.path.join(os.path.dirname(__file__), 'resources')


@pytest.fixture
def geometry_file():
    return os.path.join(RESOURCES, 'tpc_geometry.json')


@pytest.fixture
def config_file():
    return os.path.join(RESOURCES, 'krcalib_test_config.json')


@pytest.fixture
def geometry(geometry_file):
    return load_geometry(geometry_file)


@pytest.fixture
def config(config_file):
    return calibration_config(load_config(config_file))


@pytest.fixture
def single_sector_geometry():
    """One TPC, one sector, one padrow of three pads."""
    geometry = TPCGeometry()
    geometry.add_tpc(1, 'VTPC1')
    geometry.add_padrow(1, 1, 1, 3)
    return geometry


@pytest.fixture
def single_sector_config():
    return CalibrationConfig(
        tpc_list=['VTPC1'],
        min_histogram_entries=10,
        histogram_bins=100,
        histogram_padding=4.,
        min_adc_peak_search=50.
        )


@pytest.fixture
def make_event():
    """Cluster passing all cuts of the test configurations by default."""

    def _make_event(tpc_id=1, sector_id=1, padrow=1, pad=1, charge=100., **kwargs):
        fields = dict(
            max_adc=50,
            time_slice=10,
            n_pixels=12,
            n_pads=3,
            n_time_slices=5
            )
        fields.update(kwargs)
        return ClusterEvent(
            tpc_id=tpc_id, sector_id=sector_id,
            padrow=padrow, pad=pad, charge=charge, **fields
            )

    return _make_event


@pytest.fixture
def krypton_charges():
    """Charges of a gaussian Krypton peak at 100 ADC."""
    rng = np.random.default_rng(20240601)
    return rng.normal(loc=100., scale=8., size=2000)
