import logging


class Monitoring_KrAnalysis:

    """
    Monitoring data for the Krypton pad gain analysis

    Attributes
    ----------
        input_files: list of string
            Input files requested
        n_files_processed: int
            Files successfully read
        n_files_skipped: int
            Files which could not be opened or had no keys
        n_events: int
            Clusters read
        n_events_accepted: int
            Clusters which passed the cluster cuts
        n_events_other_tpc: int
            Clusters of TPCs which are not calibrated
        n_events_unknown_pad: int
            Clusters on pads missing in the geometry
        n_pads: int
            Pads of the calibrated TPCs
        n_pads_low_statistics: int
            Pads below the minimum number of histogram entries
        n_pads_no_peak: int
            Pads without any bin above the peak search threshold
        n_pads_fit_failed: int
            Pads for which the peak fit did not converge
        n_pads_fitted: int
            Pads contributing to the sector averages
        n_gains_unacceptable: int
            Fitted pads with a gain outside of the acceptable range
        empty_sectors: list
            (tpc id, sector id) without a single fitted pad
        update_gains: bool
            Previously derived gains were updated

    """

    def __init__(self):
        self.input_files = []
        self.n_files_processed = 0
        self.n_files_skipped = 0
        self.n_events = 0
        self.n_events_accepted = 0
        self.n_events_other_tpc = 0
        self.n_events_unknown_pad = 0
        self.n_pads = 0
        self.n_pads_low_statistics = 0
        self.n_pads_no_peak = 0
        self.n_pads_fit_failed = 0
        self.n_pads_fitted = 0
        self.n_gains_unacceptable = 0
        self.empty_sectors = []
        self.update_gains = False

    def fraction_fitted(self):
        if self.n_pads == 0:
            return 0.
        return self.n_pads_fitted / self.n_pads

    def log_summary(self):
        logging.info(
            "Files processed: %d, skipped: %d (of %d requested)",
            self.n_files_processed, self.n_files_skipped, len(self.input_files)
            )
        logging.info(
            "Clusters read: %d, accepted: %d, other TPCs: %d, unknown pads: %d",
            self.n_events, self.n_events_accepted,
            self.n_events_other_tpc, self.n_events_unknown_pad
            )
        logging.info(
            "Pads: %d, fitted: %d (%.1f %%), low statistics: %d, no peak: %d, fit failed: %d",
            self.n_pads, self.n_pads_fitted, 100 * self.fraction_fitted(),
            self.n_pads_low_statistics, self.n_pads_no_peak, self.n_pads_fit_failed
            )
        logging.info("Gains outside of the acceptable range: %d", self.n_gains_unacceptable)
        for tpc_id, sector_id in self.empty_sectors:
            logging.warning("TPC %d sector %d: no pad could be fitted.", tpc_id, sector_id)
