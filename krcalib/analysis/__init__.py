# Licensed under a 3-clause BSD style license - see LICENSE


from .visualization import (
    sector_gain_map,
    plot_sector_gain_map,
    plot_sector_spectra,
    plot_time_slices,
    plot_occupancy,
    plot_gains_vs_pad,
    plot_gain_distribution,
    write_qa_report
)
