# Licensed under a 3-clause BSD style license - see LICENSE


from .config import (
    FitMode,
    PeakSearchOverride,
    CalibrationConfig,
    calibration_config
)
from .spectra import (
    ClusterEvent,
    Spectrum,
    SpectrumPair,
    SectorMonitor,
    SpectrumAccumulator,
    passes_cluster_cuts
)
from .peaks import (
    PeakLocator,
    GaussianPeakLocator,
    FermiEdgeLocator,
    get_peak_locator,
    find_peak,
    half_maximum_bounds,
    fit_sector_spectrum
)
from .gains import (
    INVALID_GAIN,
    GainRecord,
    GainCalculator,
    SectorAverager,
    UndefinedSectorAverageError,
    sanitize_gain
)
from .analyzer import KryptonAnalyzer
