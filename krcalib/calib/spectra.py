import logging
from collections import namedtuple

import numpy as np

from krcalib.utils.geometry import GeometryId, GeometryError
from krcalib.utils.monitoring import Monitoring_KrAnalysis


ClusterEvent = namedtuple(
    'ClusterEvent',
    ['tpc_id', 'sector_id', 'padrow', 'pad', 'charge', 'max_adc',
     'time_slice', 'n_pixels', 'n_pads', 'n_time_slices']
    )

SpectrumPair = namedtuple('SpectrumPair', ['no_cuts', 'all_cuts'])

TIME_SLICE_BINS = 260


class Spectrum:

    """
    Fixed binning histogram of cluster charges.

    Attributes
    ----------
        edges: numpy.ndarray
            Bin edges, n_bins + 1 values
        counts: numpy.ndarray
            Bin contents
        entries: int
            Number of fills, including underflow
            and overflow
        underflow: float
        overflow: float

    """

    def __init__(self, n_bins, x_max, x_min=0.):
        if n_bins < 1:
            raise ValueError("Spectrum needs at least one bin")
        if x_max <= x_min:
            raise ValueError("Spectrum range [{}, {}) is empty".format(x_min, x_max))
        self.edges = np.linspace(x_min, x_max, n_bins + 1)
        self.counts = np.zeros(n_bins)
        self.entries = 0
        self.underflow = 0.
        self.overflow = 0.

    @property
    def n_bins(self):
        return len(self.counts)

    @property
    def x_min(self):
        return self.edges[0]

    @property
    def x_max(self):
        return self.edges[-1]

    @property
    def bin_width(self):
        return (self.x_max - self.x_min) / self.n_bins

    @property
    def centers(self):
        return (self.edges[1:] + self.edges[:-1]) / 2

    def find_bin(self, x):
        """Index of the bin containing x, clipped to the histogram range."""
        index = int(np.floor((x - self.x_min) / self.bin_width))
        return min(max(index, 0), self.n_bins - 1)

    def fill(self, x, weight=1.):
        self.entries += 1
        if not np.isfinite(x) or x >= self.x_max:
            self.overflow += weight
        elif x < self.x_min:
            self.underflow += weight
        else:
            index = int((x - self.x_min) / self.bin_width)
            # rounding just below the upper edge
            self.counts[min(index, self.n_bins - 1)] += weight

    def integral(self):
        return self.counts.sum()


class SectorMonitor:

    """
    Sector level QA distributions, filled before and
    after the cluster cuts.

    Attributes
    ----------
        spectra: SpectrumPair
            Cluster charges of the whole sector
        time_slices: SpectrumPair
            Time slice of the clusters
        occupancy: SpectrumPair of numpy.ndarray
            Entries per [padrow, pad]

    """

    def __init__(self, n_bins, x_max, n_padrows, n_pads):
        self.spectra = SpectrumPair(Spectrum(2 * n_bins, x_max), Spectrum(2 * n_bins, x_max))
        self.time_slices = SpectrumPair(
            Spectrum(TIME_SLICE_BINS, TIME_SLICE_BINS),
            Spectrum(TIME_SLICE_BINS, TIME_SLICE_BINS)
            )
        self.occupancy = SpectrumPair(
            np.zeros((n_padrows + 1, n_pads + 1)),
            np.zeros((n_padrows + 1, n_pads + 1))
            )

    def _fill_occupancy(self, occupancy, padrow, pad):
        if 0 <= padrow < occupancy.shape[0] and 0 <= pad < occupancy.shape[1]:
            occupancy[padrow, pad] += 1

    def fill_no_cuts(self, event):
        self.spectra.no_cuts.fill(event.charge)
        self.time_slices.no_cuts.fill(event.time_slice)
        self._fill_occupancy(self.occupancy.no_cuts, event.padrow, event.pad)

    def fill_all_cuts(self, event, charge):
        self.spectra.all_cuts.fill(charge)
        self.time_slices.all_cuts.fill(event.time_slice)
        self._fill_occupancy(self.occupancy.all_cuts, event.padrow, event.pad)


def passes_cluster_cuts(event, config):
    """
    Krypton cluster selection.

    Parameters
    ----------
    event: krcalib.calib.spectra.ClusterEvent
    config: krcalib.calib.config.CalibrationConfig

    Returns
    -------
    bool

    """

    if event.charge == 0:
        return False
    if event.n_pads < config.min_pads or event.n_pads > config.max_pads:
        return False
    if (event.n_time_slices < config.min_time_slices or
            event.n_time_slices > config.max_time_slices):
        return False
    if event.time_slice < config.min_time_slice_number:
        return False
    # small clusters are kept only if they are sharp enough
    if event.charge < config.charge_cut and event.max_adc < config.max_adc_cut:
        return False
    return True


class SpectrumAccumulator:

    """
    Fills the per pad charge spectra of the calibrated TPCs.

    Attributes
    ----------
        geometry: krcalib.utils.geometry.TPCGeometry
        config: krcalib.calib.config.CalibrationConfig
        update_gains: bool
            Rescale the accepted charges with the pad gains
            attached to the geometry
        tpc_ids: list of int
            TPCs being calibrated
        spectra: dict
            GeometryId -> SpectrumPair
        sector_monitors: dict
            (tpc id, sector id) -> SectorMonitor
        processing_info: krcalib.utils.monitoring.Monitoring_KrAnalysis

    """

    def __init__(self, geometry, config, update_gains=False, processing_info=None):

        self.geometry = geometry
        self.config = config
        self.update_gains = update_gains
        self.processing_info = processing_info or Monitoring_KrAnalysis()
        self.spectra = {}
        self.sector_monitors = {}
        self._unknown_pads = set()

        self.tpc_ids = []
        for name in config.tpc_list:
            try:
                self.tpc_ids.append(geometry.tpc_id(name))
                logging.info("Added TPC %s (ID = %d)", name, geometry.tpc_id(name))
            except KeyError:
                logging.warning("TPC %s from the configuration is not in the geometry, ignored.", name)
        if not self.tpc_ids:
            raise GeometryError("None of the configured TPCs {} is in the geometry".format(config.tpc_list))

        self.book_spectra()

    def book_spectra(self):
        for tpc_id in self.tpc_ids:
            tpc_name = self.geometry.tpc_name(tpc_id)
            for sector_id in self.geometry.sectors(tpc_id):
                histogram_max = self.config.histogram_max(tpc_name, sector_id)
                padrows = self.geometry.padrows(tpc_id, sector_id)
                self.sector_monitors[(tpc_id, sector_id)] = SectorMonitor(
                    self.config.histogram_bins, histogram_max,
                    max(padrows), self.geometry.max_pads(tpc_id, sector_id)
                    )
                for padrow_id in padrows:
                    for pad_id in range(1, self.geometry.n_pads(tpc_id, sector_id, padrow_id) + 1):
                        self.spectra[GeometryId(tpc_id, sector_id, padrow_id, pad_id)] = SpectrumPair(
                            Spectrum(self.config.histogram_bins, histogram_max),
                            Spectrum(self.config.histogram_bins, histogram_max)
                            )
        self.processing_info.n_pads = len(self.spectra)
        logging.info("%d pad spectra booked.", len(self.spectra))

    def accumulate(self, event):
        """
        Adds one cluster to the spectra of its pad.

        Parameters
        ----------
        event: krcalib.calib.spectra.ClusterEvent

        Returns
        -------
        bool
            True if the cluster passed the cuts and
            entered the all-cuts spectrum

        """

        self.processing_info.n_events += 1
        if event.tpc_id not in self.tpc_ids:
            self.processing_info.n_events_other_tpc += 1
            return False

        geometry_id = GeometryId(event.tpc_id, event.sector_id, event.padrow, event.pad)
        pad_spectra = self.spectra.get(geometry_id)
        if pad_spectra is None:
            self.processing_info.n_events_unknown_pad += 1
            if geometry_id not in self._unknown_pads:
                self._unknown_pads.add(geometry_id)
                logging.warning("Cluster on pad %s which is not in the geometry, skipped.", geometry_id)
            return False

        monitor = self.sector_monitors[(event.tpc_id, event.sector_id)]
        pad_spectra.no_cuts.fill(event.charge)
        monitor.fill_no_cuts(event)

        if not passes_cluster_cuts(event, self.config):
            return False

        charge = event.charge
        if self.update_gains:
            charge *= self.geometry.pad_gain(geometry_id)

        pad_spectra.all_cuts.fill(charge)
        monitor.fill_all_cuts(event, charge)
        self.processing_info.n_events_accepted += 1
        return True

    def accumulate_all(self, events):
        for event in events:
            self.accumulate(event)
