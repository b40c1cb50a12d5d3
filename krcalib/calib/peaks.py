import logging
from abc import ABC, abstractmethod

import numpy as np
from iminuit import Minuit
from iminuit.cost import LeastSquares

from krcalib.calib.config import FitMode
from krcalib.utils.monitoring import Monitoring_KrAnalysis


HALF_MAXIMUM = 0.5
FWHM_TO_SIGMA = 1. / (2 * np.sqrt(2 * np.log(2)))

EDGE_SLOPE_START = 0.01
EDGE_SLOPE_LIMITS = (1e-4, 1.)

# sector QA fit window
SECTOR_FIT_FRACTION = 0.7
SECTOR_FIT_MAX_STEPS = 50


def gauss(x, amplitude, mean, sigma):
    return amplitude * np.exp(-(x - mean)**2 / (2 * sigma**2))


def fermi(x, amplitude, slope, edge):
    """
    Fermi-Dirac like falloff of the Krypton spectrum
    above the main peak.
    """
    with np.errstate(over='ignore'):
        return amplitude / (1 + np.exp(slope * (x - edge)))


def find_peak(spectrum, min_search_charge):
    """
    Finds the highest bin with center above the minimum
    search charge.

    Parameters
    ----------
    spectrum: krcalib.calib.spectra.Spectrum
    min_search_charge: float

    Returns
    -------
    tuple (int, float, float) or None
        Bin index, bin center and bin content of the
        maximum. None if no bin above the threshold
        has entries.

    """

    candidates = np.flatnonzero(spectrum.centers >= min_search_charge)
    if len(candidates) == 0:
        return None
    # argmax keeps the first of equal maxima
    peak_bin = candidates[np.argmax(spectrum.counts[candidates])]
    peak_value = spectrum.counts[peak_bin]
    if peak_value <= 0:
        return None
    return int(peak_bin), spectrum.centers[peak_bin], peak_value


def half_maximum_bounds(spectrum, peak_bin, peak_value):
    """
    Walks independently to the left and to the right of the
    peak until the content drops below half of the maximum.
    When no such bin exists, the corresponding end of the
    histogram is used.

    Returns
    -------
    tuple (float, float)
        Lower and upper charge of the fit range

    """

    counts = spectrum.counts
    centers = spectrum.centers
    threshold = HALF_MAXIMUM * peak_value

    lower = spectrum.x_min
    for index in range(peak_bin, -1, -1):
        if counts[index] < threshold:
            lower = centers[index]
            break

    upper = centers[-1]
    for index in range(peak_bin, spectrum.n_bins):
        if counts[index] < threshold:
            upper = centers[index]
            break

    return lower, upper


def _fit_points(spectrum, lower, upper):
    # empty bins do not enter the chi2
    mask = (spectrum.centers >= lower) & (spectrum.centers <= upper) & (spectrum.counts > 0)
    return spectrum.centers[mask], spectrum.counts[mask]


def fit_gaussian(x, y, amplitude, mean, sigma):
    """
    Least squares gaussian fit with Poisson errors.

    Returns
    -------
    iminuit.Minuit or None
        None if there are not enough points or if the
        minimization did not converge.

    """

    if len(x) < 3:
        return None
    cost = LeastSquares(x, y, np.sqrt(y), gauss)
    m = Minuit(cost, amplitude=amplitude, mean=mean, sigma=sigma)
    m.limits['amplitude'] = (0, None)
    m.limits['sigma'] = (0, None)
    m.migrad()
    if not m.valid or not np.all(np.isfinite(np.array(m.values))):
        return None
    return m


def fit_fermi_edge(x, y, amplitude, edge):
    """
    Fits the upper edge of the spectrum with the
    amplitude fixed to the peak height.

    Returns
    -------
    iminuit.Minuit or None

    """

    if len(x) < 2:
        return None
    cost = LeastSquares(x, y, np.sqrt(y), fermi)
    m = Minuit(cost, amplitude=amplitude, slope=EDGE_SLOPE_START, edge=edge)
    m.fixed['amplitude'] = True
    m.limits['slope'] = EDGE_SLOPE_LIMITS
    m.migrad()
    if not m.valid or not np.isfinite(m.values['edge']):
        return None
    return m


class PeakLocator(ABC):

    """
    Localizes the Krypton calibration peak of a pad spectrum.
    Subclasses implement one fit strategy in ``fit``.

    Attributes
    ----------
        min_histogram_entries: int
            Spectra with fewer entries are not fitted
        processing_info: krcalib.utils.monitoring.Monitoring_KrAnalysis

    """

    mode = None

    def __init__(self, min_histogram_entries=0, processing_info=None):
        self.min_histogram_entries = min_histogram_entries
        self.processing_info = processing_info or Monitoring_KrAnalysis()

    def locate(self, spectrum, min_search_charge):
        """
        Parameters
        ----------
        spectrum: krcalib.calib.spectra.Spectrum
        min_search_charge: float
            Charge above which the peak is searched

        Returns
        -------
        float or None
            Peak position, None if the pad has to be
            excluded from the calibration

        """

        if spectrum.entries < self.min_histogram_entries:
            self.processing_info.n_pads_low_statistics += 1
            return None

        peak = find_peak(spectrum, min_search_charge)
        if peak is None:
            self.processing_info.n_pads_no_peak += 1
            return None

        position = self.fit(spectrum, *peak)
        if position is None:
            self.processing_info.n_pads_fit_failed += 1
            return None
        return position

    @abstractmethod
    def fit(self, spectrum, peak_bin, peak_position, peak_value):
        """
        Fits the peak found by ``find_peak``.

        Returns
        -------
        float or None
            Peak position, None if the fit failed

        """


class GaussianPeakLocator(PeakLocator):

    """Gaussian fit within the full width at half maximum of the peak."""

    mode = FitMode.PEAK

    def fit(self, spectrum, peak_bin, peak_position, peak_value):
        lower, upper = half_maximum_bounds(spectrum, peak_bin, peak_value)
        x, y = _fit_points(spectrum, lower, upper)
        sigma = max((upper - lower) * FWHM_TO_SIGMA, spectrum.bin_width)
        m = fit_gaussian(x, y, peak_value, peak_position, sigma)
        if m is None:
            return None
        return m.values['mean']


class FermiEdgeLocator(PeakLocator):

    """Fermi function fit of the falloff between the peak and the end of the histogram."""

    mode = FitMode.EDGE

    def fit(self, spectrum, peak_bin, peak_position, peak_value):
        x, y = _fit_points(spectrum, peak_position, spectrum.centers[-1])
        m = fit_fermi_edge(x, y, peak_value, peak_position)
        if m is None:
            return None
        return m.values['edge']


PEAK_LOCATORS = {
    FitMode.PEAK: GaussianPeakLocator,
    FitMode.EDGE: FermiEdgeLocator,
}


def get_peak_locator(config, processing_info=None):
    """
    Parameters
    ----------
    config: krcalib.calib.config.CalibrationConfig
    processing_info: krcalib.utils.monitoring.Monitoring_KrAnalysis

    Returns
    -------
    krcalib.calib.peaks.PeakLocator

    """

    locator = PEAK_LOCATORS[config.fit_function]
    logging.info("Peak localization: %s", locator.__name__)
    return locator(
        min_histogram_entries=config.min_histogram_entries,
        processing_info=processing_info
        )


def fit_sector_spectrum(spectrum, min_search_charge):
    """
    QA fit of the summed sector spectrum. The window is
    symmetric around the maximum, its half width is the
    number of bins until the content drops below 70 % of
    the maximum (at most 50 bins).

    Parameters
    ----------
    spectrum: krcalib.calib.spectra.Spectrum
    min_search_charge: float

    Returns
    -------
    tuple (float, float) or None
        Mean and sigma of the gaussian

    """

    counts = spectrum.counts
    start = spectrum.find_bin(min_search_charge)
    # last bin is not searched
    if start >= spectrum.n_bins - 1:
        return None
    max_bin = start + int(np.argmax(counts[start:spectrum.n_bins - 1]))
    max_value = counts[max_bin]
    if max_value <= 0:
        return None

    half_width = SECTOR_FIT_MAX_STEPS
    for step in range(SECTOR_FIT_MAX_STEPS):
        index = max_bin + step
        content = counts[index] if index < spectrum.n_bins else 0.
        if content < SECTOR_FIT_FRACTION * max_value:
            half_width = step
            break

    centers = spectrum.centers
    lower = centers[max(max_bin - half_width, 0)]
    upper = centers[min(max_bin + half_width, spectrum.n_bins - 1)]
    x, y = _fit_points(spectrum, lower, upper)
    sigma = max((upper - lower) / 2, spectrum.bin_width)
    m = fit_gaussian(x, y, max_value, centers[max_bin], sigma)
    if m is None:
        return None
    return m.values['mean'], abs(m.values['sigma'])
