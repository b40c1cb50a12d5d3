import math
from collections import namedtuple

import numpy as np


INVALID_GAIN = -1.


class UndefinedSectorAverageError(Exception):
    """No pad of a sector could be fitted, the sector has no reference peak."""


class SectorAverager:

    """
    Running average of the pad peak positions per sector.

    Attributes
    ----------
        sums: dict
            sector key -> sum of peak positions
        counts: dict
            sector key -> number of contributing pads

    """

    def __init__(self):
        self.sums = {}
        self.counts = {}

    def add_value(self, sector_key, value):
        self.sums[sector_key] = self.sums.get(sector_key, 0.) + value
        self.counts[sector_key] = self.counts.get(sector_key, 0) + 1

    def count(self, sector_key):
        return self.counts.get(sector_key, 0)

    def keys(self):
        return list(self.counts)

    def average(self, sector_key):
        count = self.count(sector_key)
        if count == 0:
            raise UndefinedSectorAverageError(
                "No pad peak contributed to sector {}".format(sector_key)
                )
        return self.sums[sector_key] / count


_GainRecord = namedtuple(
    'GainRecord',
    ['geometry_id', 'raw_peak_position', 'gain', 'acceptable']
    )


class GainRecord(_GainRecord):

    """
    Gain derived for one pad.

    Attributes
    ----------
        geometry_id: krcalib.utils.geometry.GeometryId
        raw_peak_position: float
            Fitted Krypton peak (or edge) of the pad
        gain: float
            Gain, 0 if it was not a finite number
        acceptable: bool
            Gain within the acceptable range

    """

    __slots__ = ()

    @property
    def table_value(self):
        return self.gain if self.acceptable else INVALID_GAIN


def sanitize_gain(gain):
    if gain is None or math.isnan(gain) or math.isinf(gain):
        return 0.
    return gain


class GainCalculator:

    """
    Normalizes the pad peak position to the sector average.

    Attributes
    ----------
        min_acceptable_gain: float
        max_acceptable_gain: float

    """

    def __init__(self, min_acceptable_gain, max_acceptable_gain):
        self.min_acceptable_gain = min_acceptable_gain
        self.max_acceptable_gain = max_acceptable_gain

    @classmethod
    def from_config(cls, config):
        return cls(config.min_acceptable_gain, config.max_acceptable_gain)

    def is_acceptable(self, gain):
        return self.min_acceptable_gain < gain < self.max_acceptable_gain

    def compute_gain(self, sector_average, pad_peak, prior_gain=None, geometry_id=None):
        """
        Parameters
        ----------
        sector_average: float
            Average peak position of the sector
        pad_peak: float
            Peak position of the pad, None if missing
        prior_gain: float
            Gain of the pad used to rescale the charges
            (update of previous gains), None otherwise
        geometry_id: krcalib.utils.geometry.GeometryId

        Returns
        -------
        krcalib.calib.gains.GainRecord

        """

        # missing or zero peaks end up as 0 through the sanitization
        try:
            with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
                gain = sector_average / pad_peak
                if prior_gain is not None:
                    gain = prior_gain * gain
        except (TypeError, ZeroDivisionError, OverflowError):
            gain = float('nan')

        gain = sanitize_gain(float(gain))
        return GainRecord(geometry_id, pad_peak, gain, self.is_acceptable(gain))
