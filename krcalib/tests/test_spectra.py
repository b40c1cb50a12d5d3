import numpy as np
import pytest

from krcalib.calib import (
    Spectrum,
    SpectrumAccumulator,
    CalibrationConfig,
    passes_cluster_cuts
)
from krcalib.utils import GeometryId, GeometryError, Monitoring_KrAnalysis


def test_spectrum_binning():

    spectrum = Spectrum(10, 20.)
    assert spectrum.n_bins == 10
    assert spectrum.bin_width == 2.
    assert np.allclose(spectrum.centers[:2], [1., 3.])
    assert spectrum.find_bin(5.) == 2
    assert spectrum.find_bin(-3.) == 0
    assert spectrum.find_bin(100.) == 9

    for x in [0., 1.9, 2., 19.99, 20., -1., np.nan]:
        spectrum.fill(x)
    assert spectrum.entries == 7
    assert spectrum.counts[0] == 2
    assert spectrum.counts[1] == 1
    assert spectrum.counts[9] == 1
    assert spectrum.underflow == 1
    assert spectrum.overflow == 2
    assert spectrum.integral() == 4


def test_spectrum_empty_range():
    with pytest.raises(ValueError):
        Spectrum(10, 0.)
    with pytest.raises(ValueError):
        Spectrum(0, 10.)


def test_cut_boundaries(config, make_event):

    assert passes_cluster_cuts(make_event(), config)
    # pads
    assert not passes_cluster_cuts(make_event(n_pads=config.min_pads - 1), config)
    assert passes_cluster_cuts(make_event(n_pads=config.min_pads), config)
    assert passes_cluster_cuts(make_event(n_pads=config.max_pads), config)
    assert not passes_cluster_cuts(make_event(n_pads=config.max_pads + 1), config)
    # time slices
    assert not passes_cluster_cuts(make_event(n_time_slices=config.min_time_slices - 1), config)
    assert passes_cluster_cuts(make_event(n_time_slices=config.max_time_slices), config)
    assert not passes_cluster_cuts(make_event(n_time_slices=config.max_time_slices + 1), config)
    assert not passes_cluster_cuts(make_event(time_slice=config.min_time_slice_number - 1), config)
    assert passes_cluster_cuts(make_event(time_slice=config.min_time_slice_number), config)


def test_charge_cuts(config, make_event):

    assert not passes_cluster_cuts(make_event(charge=0.), config)
    # small clusters need a high maxADC
    assert not passes_cluster_cuts(make_event(charge=20., max_adc=10), config)
    assert passes_cluster_cuts(make_event(charge=20., max_adc=20), config)
    assert passes_cluster_cuts(make_event(charge=30., max_adc=10), config)


def test_accumulator_booking(geometry, config):

    accumulator = SpectrumAccumulator(geometry, config)
    assert accumulator.tpc_ids == [1]
    assert len(accumulator.spectra) == 7
    assert set(accumulator.sector_monitors) == {(1, 1), (1, 2)}

    sector_1 = accumulator.spectra[GeometryId(1, 1, 2, 2)].all_cuts
    sector_2 = accumulator.spectra[GeometryId(1, 2, 1, 1)].no_cuts
    assert sector_1.n_bins == config.histogram_bins
    assert sector_1.x_max == 200.
    assert sector_2.x_max == 240.
    assert accumulator.sector_monitors[(1, 1)].spectra.all_cuts.n_bins == 2 * config.histogram_bins
    assert accumulator.sector_monitors[(1, 1)].occupancy.all_cuts.shape == (3, 4)


def test_accumulator_without_known_tpc(geometry):
    with pytest.raises(GeometryError):
        SpectrumAccumulator(geometry, CalibrationConfig(tpc_list=['MTPCR']))


def test_accumulate(geometry, config, make_event):

    processing_info = Monitoring_KrAnalysis()
    accumulator = SpectrumAccumulator(geometry, config, processing_info=processing_info)
    pad = accumulator.spectra[GeometryId(1, 1, 1, 2)]

    assert accumulator.accumulate(make_event(pad=2, charge=101.))
    assert not accumulator.accumulate(make_event(pad=2, charge=101., n_pads=1))

    assert pad.no_cuts.entries == 2
    assert pad.all_cuts.entries == 1
    assert pad.all_cuts.counts[50] == 1
    monitor = accumulator.sector_monitors[(1, 1)]
    assert monitor.spectra.no_cuts.entries == 2
    assert monitor.spectra.all_cuts.entries == 1
    assert monitor.time_slices.all_cuts.counts[10] == 1
    assert monitor.occupancy.no_cuts[1, 2] == 2
    assert monitor.occupancy.all_cuts[1, 2] == 1

    # other pads untouched
    assert accumulator.spectra[GeometryId(1, 1, 1, 1)].no_cuts.entries == 0
    assert processing_info.n_events == 2
    assert processing_info.n_events_accepted == 1


def test_accumulate_unknown_pads(geometry, config, make_event):

    processing_info = Monitoring_KrAnalysis()
    accumulator = SpectrumAccumulator(geometry, config, processing_info=processing_info)

    assert not accumulator.accumulate(make_event(pad=4))
    assert not accumulator.accumulate(make_event(pad=4))
    assert not accumulator.accumulate(make_event(tpc_id=7))
    assert processing_info.n_events_unknown_pad == 2
    assert processing_info.n_events_other_tpc == 1
    assert all(pair.no_cuts.entries == 0 for pair in accumulator.spectra.values())


def test_accumulate_update_gains(geometry, config, make_event):

    gid = GeometryId(1, 1, 1, 1)
    geometry.set_pad_gains({gid: 2.})
    accumulator = SpectrumAccumulator(geometry, config, update_gains=True)
    accumulator.accumulate(make_event(charge=50.))

    pad = accumulator.spectra[gid]
    # the no-cuts spectrum keeps the raw charge
    assert pad.no_cuts.counts[25] == 1
    assert pad.all_cuts.counts[50] == 1
