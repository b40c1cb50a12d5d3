import logging

from krcalib.calib.spectra import SpectrumAccumulator
from krcalib.calib.peaks import get_peak_locator, fit_sector_spectrum
from krcalib.calib.gains import (
    SectorAverager,
    GainCalculator,
    UndefinedSectorAverageError
    )
from krcalib.utils.geometry import GeometryId
from krcalib.utils.monitoring import Monitoring_KrAnalysis


class KryptonAnalyzer:

    """
    Pad by pad gain calibration with Krypton decay clusters.
    The analysis runs in three passes: filling of the pad
    spectra, peak localization with the sector averages, and
    normalization of every pad to its sector.

    Attributes
    ----------
        geometry: krcalib.utils.geometry.TPCGeometry
        config: krcalib.calib.config.CalibrationConfig
        update_gains: bool
            Derive new gains on top of the gains attached
            to the geometry
        accumulator: krcalib.calib.spectra.SpectrumAccumulator
        locator: krcalib.calib.peaks.PeakLocator
        averager: krcalib.calib.gains.SectorAverager
        calculator: krcalib.calib.gains.GainCalculator
        peaks: dict
            GeometryId -> fitted peak position
        gains: dict
            GeometryId -> krcalib.calib.gains.GainRecord
        sector_fits: dict
            (tpc id, sector id) -> (mean, sigma) of the QA fit
            of the sector spectrum, None if it failed
        processing_info: krcalib.utils.monitoring.Monitoring_KrAnalysis

    """

    def __init__(self, geometry, config, update_gains=False, processing_info=None):

        self.geometry = geometry
        self.config = config
        self.update_gains = update_gains
        self.processing_info = processing_info or Monitoring_KrAnalysis()
        self.processing_info.update_gains = update_gains

        self.accumulator = SpectrumAccumulator(
            geometry, config,
            update_gains=update_gains,
            processing_info=self.processing_info
            )
        self.locator = get_peak_locator(config, processing_info=self.processing_info)
        self.averager = SectorAverager()
        self.calculator = GainCalculator.from_config(config)

        self.peaks = {}
        self.gains = {}
        self.sector_fits = {}

    @property
    def tpc_ids(self):
        return self.accumulator.tpc_ids

    @property
    def spectra(self):
        return self.accumulator.spectra

    @property
    def sector_monitors(self):
        return self.accumulator.sector_monitors

    def min_search_charge(self, tpc_id, sector_id):
        return self.config.min_search_charge(self.geometry.tpc_name(tpc_id), sector_id)

    def process_events(self, events):
        """
        Fills the pad spectra.

        Parameters
        ----------
        events: iterable of krcalib.calib.spectra.ClusterEvent

        """

        self.accumulator.accumulate_all(events)
        logging.info(
            "%d clusters processed, %d passed the cluster cuts.",
            self.processing_info.n_events, self.processing_info.n_events_accepted
            )
        if self.processing_info.n_events_accepted == 0:
            logging.warning("No cluster passed the cuts. Were the calibrated TPCs in the input files?")

    def locate_peaks(self):
        """
        Localizes the peak of every pad spectrum and adds
        it to the average of its sector.

        Returns
        -------
        dict
            GeometryId -> peak position

        """

        for geometry_id, pad_spectra in self.spectra.items():
            position = self.locator.locate(
                pad_spectra.all_cuts,
                self.min_search_charge(geometry_id.tpc_id, geometry_id.sector_id)
                )
            if position is None:
                continue
            self.peaks[geometry_id] = position
            self.averager.add_value((geometry_id.tpc_id, geometry_id.sector_id), position)

        self.processing_info.n_pads_fitted = len(self.peaks)
        logging.info("Peak found in %d of %d pads.", len(self.peaks), len(self.spectra))
        return self.peaks

    def fit_sector_spectra(self):
        for (tpc_id, sector_id), monitor in self.sector_monitors.items():
            result = fit_sector_spectrum(
                monitor.spectra.all_cuts,
                self.min_search_charge(tpc_id, sector_id)
                )
            self.sector_fits[(tpc_id, sector_id)] = result
            if result is None:
                logging.info(
                    "%s sector %d: fit of the sector spectrum failed.",
                    self.geometry.tpc_name(tpc_id), sector_id
                    )
            else:
                logging.info(
                    "%s sector %d: sector spectrum mean = %.4f, sigma = %.3f",
                    self.geometry.tpc_name(tpc_id), sector_id, *result
                    )
        return self.sector_fits

    def sector_average(self, tpc_id, sector_id):
        return self.averager.average((tpc_id, sector_id))

    def compute_gains(self):
        """
        Normalizes the pads to their sector average.

        Returns
        -------
        dict
            GeometryId -> krcalib.calib.gains.GainRecord

        Raises
        ------
        krcalib.calib.gains.UndefinedSectorAverageError
            A calibrated sector has no fitted pad and empty
            sectors are not allowed in the configuration

        """

        for tpc_id in self.tpc_ids:
            tpc_name = self.geometry.tpc_name(tpc_id)
            for sector_id in self.geometry.sectors(tpc_id):
                try:
                    sector_average = self.sector_average(tpc_id, sector_id)
                except UndefinedSectorAverageError:
                    self.processing_info.empty_sectors.append((tpc_id, sector_id))
                    if not self.config.allow_empty_sectors:
                        logging.error("%s sector %d: no pad could be fitted.", tpc_name, sector_id)
                        raise
                    logging.warning(
                        "%s sector %d: no pad could be fitted, all its gains are invalid.",
                        tpc_name, sector_id
                        )
                    continue

                logging.info(
                    "%s sector %d: average peak %.3f from %d pads",
                    tpc_name, sector_id, sector_average,
                    self.averager.count((tpc_id, sector_id))
                    )

                for padrow_id in self.geometry.padrows(tpc_id, sector_id):
                    n_pads = self.geometry.n_pads(tpc_id, sector_id, padrow_id)
                    for pad_id in range(1, n_pads + 1):
                        geometry_id = GeometryId(tpc_id, sector_id, padrow_id, pad_id)
                        if geometry_id not in self.peaks:
                            continue
                        prior_gain = self.geometry.pad_gain(geometry_id) if self.update_gains else None
                        record = self.calculator.compute_gain(
                            sector_average, self.peaks[geometry_id],
                            prior_gain=prior_gain, geometry_id=geometry_id
                            )
                        if self.update_gains:
                            logging.debug(
                                "%s: previous gain = %s, pad ADC = %s, sector ADC = %s, new gain = %s",
                                geometry_id, prior_gain, record.raw_peak_position,
                                sector_average, record.gain
                                )
                        if not record.acceptable:
                            self.processing_info.n_gains_unacceptable += 1
                        self.gains[geometry_id] = record

        return self.gains

    def run(self, events):
        """
        Runs the full analysis.

        Parameters
        ----------
        events: iterable of krcalib.calib.spectra.ClusterEvent

        Returns
        -------
        dict
            GeometryId -> krcalib.calib.gains.GainRecord

        """

        self.process_events(events)
        self.locate_peaks()
        self.fit_sector_spectra()
        return self.compute_gains()
