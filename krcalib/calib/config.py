import logging
from enum import Enum
from typing import List

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator
    )


class FitMode(str, Enum):
    """
    Strategy used to localize the Krypton peak in
    a pad spectrum.
    """

    PEAK = "peak"
    EDGE = "edge"


# Names used by older configuration files
FIT_MODE_ALIASES = {
    "gaussian": FitMode.PEAK,
    "gaus": FitMode.PEAK,
    "fermi": FitMode.EDGE,
}


class PeakSearchOverride(BaseModel):
    """
    Minimum charge for the peak search in selected
    sectors of one TPC, e.g. the VTPC1 upstream sectors
    where the spectrum is strongly asymmetric.
    """

    model_config = ConfigDict(frozen=True)

    tpc: str
    sectors: List[int]
    min_adc_peak_search: float = Field(gt=0)


class CalibrationConfig(BaseModel):
    """
    Immutable set of parameters of the Krypton pad gain
    analysis. Built once from the ``krypton_analysis``
    section of the configuration file and handed to
    every stage of the analysis.
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    tpc_list: List[str] = Field(min_length=1)
    fit_function: FitMode = FitMode.PEAK
    min_acceptable_gain: float = Field(default=0.5, ge=0)
    max_acceptable_gain: float = 1.5
    min_histogram_entries: int = Field(default=100, ge=0)
    histogram_bins: int = Field(default=200, gt=0)
    histogram_padding: float = Field(default=3.0, gt=0)

    # cluster cuts
    min_pads: int = Field(default=2, ge=0)
    max_pads: int = Field(default=10, ge=0)
    min_time_slices: int = Field(default=2, ge=0)
    max_time_slices: int = Field(default=20, ge=0)
    min_time_slice_number: int = Field(default=0, ge=0)
    max_adc_cut: float = 0.
    charge_cut: float = 0.

    min_adc_peak_search: float = Field(default=100., gt=0)
    peak_search_overrides: List[PeakSearchOverride] = []
    allow_empty_sectors: bool = False

    @field_validator('fit_function', mode='before')
    @classmethod
    def _translate_fit_alias(cls, value):
        if isinstance(value, str):
            value = value.lower()
            return FIT_MODE_ALIASES.get(value, value)
        return value

    @model_validator(mode='after')
    def _check_ranges(self):
        if self.min_pads > self.max_pads:
            raise ValueError('min_pads must not exceed max_pads')
        if self.min_time_slices > self.max_time_slices:
            raise ValueError('min_time_slices must not exceed max_time_slices')
        if self.min_acceptable_gain >= self.max_acceptable_gain:
            raise ValueError('min_acceptable_gain must be below max_acceptable_gain')
        return self

    def min_search_charge(self, tpc_name, sector_id):
        """
        Minimum cluster charge above which the Krypton peak
        is searched in a given sector.

        Parameters
        ----------
        tpc_name: string
        sector_id: int

        Returns
        -------
        float

        """

        for override in self.peak_search_overrides:
            if override.tpc == tpc_name and sector_id in override.sectors:
                return override.min_adc_peak_search
        return self.min_adc_peak_search

    def histogram_max(self, tpc_name, sector_id):
        return self.min_search_charge(tpc_name, sector_id) * self.histogram_padding

    def log_settings(self):
        logging.info("TPCs to calibrate: %s", ", ".join(self.tpc_list))
        logging.info("Fit function: %s", self.fit_function.value)
        logging.info(
            "Acceptable gains: (%s, %s)",
            self.min_acceptable_gain, self.max_acceptable_gain
            )
        logging.info("Minimum histogram entries: %d", self.min_histogram_entries)
        logging.info(
            "Histogram bins: %d, padding: %s",
            self.histogram_bins, self.histogram_padding
            )
        logging.info(
            "Cluster cuts: pads [%d, %d], time slices [%d, %d], "
            "first time slice >= %d, charge >= %s or maxADC >= %s",
            self.min_pads, self.max_pads,
            self.min_time_slices, self.max_time_slices,
            self.min_time_slice_number,
            self.charge_cut, self.max_adc_cut
            )
        logging.info("Minimum ADC for peak search: %s", self.min_adc_peak_search)
        for override in self.peak_search_overrides:
            logging.info(
                "Minimum ADC for peak search in %s sectors %s: %s",
                override.tpc, override.sectors, override.min_adc_peak_search
                )


def calibration_config(config):
    """
    Builds the analysis configuration from the
    loaded configuration file.

    Parameters
    ----------
    config: dict
        Content of the configuration file, see
        krcalib.io.load_config

    Returns
    -------
    krcalib.calib.config.CalibrationConfig

    """

    if "krypton_analysis" not in config:
        raise KeyError("Configuration has no 'krypton_analysis' section")
    return CalibrationConfig.model_validate(dict(config["krypton_analysis"]))
