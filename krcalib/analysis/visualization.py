import logging

import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import numpy as np

from krcalib.calib.gains import INVALID_GAIN
from krcalib.calib.peaks import gauss


GAIN_MAP_RANGE = (0.6, 1.4)
GAIN_DISTRIBUTION_RANGE = (0.5, 1.5)
GAIN_DISTRIBUTION_BINS = 200


def sector_gain_map(gains, geometry, tpc_id, sector_id):
    """
    Gains of one sector as an image, NaN for pads
    without gain.

    Parameters
    ----------
    gains: dict
        GeometryId -> krcalib.calib.gains.GainRecord
    geometry: krcalib.utils.geometry.TPCGeometry
    tpc_id: int
    sector_id: int

    Returns
    -------
    numpy.ndarray
        Gains indexed by [padrow, pad]

    """

    padrows = geometry.padrows(tpc_id, sector_id)
    gain_map = np.full((max(padrows) + 1, geometry.max_pads(tpc_id, sector_id) + 1), np.nan)
    for gid, record in gains.items():
        if (gid.tpc_id, gid.sector_id) != (tpc_id, sector_id):
            continue
        if record.table_value != INVALID_GAIN:
            gain_map[gid.padrow_id, gid.pad_id] = record.gain
    return gain_map


def plot_sector_gain_map(ax, gains, geometry, tpc_id, sector_id):
    gain_map = sector_gain_map(gains, geometry, tpc_id, sector_id)
    img = ax.imshow(
        gain_map, origin='lower', aspect='auto', interpolation='none',
        vmin=GAIN_MAP_RANGE[0], vmax=GAIN_MAP_RANGE[1], cmap='viridis'
        )
    ax.set_xlabel('Pad')
    ax.set_ylabel('Padrow')
    ax.set_title('{} sector {}: pad gains'.format(geometry.tpc_name(tpc_id), sector_id))
    return img


def plot_sector_spectra(ax, monitor, sector_fit=None, title=''):
    """
    Sector charge spectrum before and after the cluster
    cuts, with the gaussian fit around the Krypton peak.

    Parameters
    ----------
    ax: matplotlib.axes.Axes
    monitor: krcalib.calib.spectra.SectorMonitor
    sector_fit: tuple (float, float)
        Mean and sigma of the sector spectrum fit
    title: string

    """

    for spectrum, label, color in [
            (monitor.spectra.no_cuts, 'no cuts', 'grey'),
            (monitor.spectra.all_cuts, 'all cuts', 'black')]:
        ax.stairs(spectrum.counts, spectrum.edges, label=label, color=color)

    if sector_fit is not None:
        mean, sigma = sector_fit
        spectrum = monitor.spectra.all_cuts
        peak_bin = spectrum.find_bin(mean)
        x = np.linspace(mean - 2 * sigma, mean + 2 * sigma, 100)
        ax.plot(x, gauss(x, spectrum.counts[peak_bin], mean, sigma), color='red', label='fit')
        ax.text(
            0.6, 0.75, '$\\mu$ = {:.1f}\n$\\sigma$ = {:.1f}'.format(mean, sigma),
            transform=ax.transAxes, color='red'
            )

    ax.set_xlabel('Cluster charge [ADC]')
    ax.set_ylabel('Clusters')
    ax.set_title(title)
    ax.legend()


def plot_time_slices(ax, monitor, title=''):
    for spectrum, label, color in [
            (monitor.time_slices.no_cuts, 'no cuts', 'grey'),
            (monitor.time_slices.all_cuts, 'all cuts', 'black')]:
        ax.stairs(spectrum.counts, spectrum.edges, label=label, color=color)
    ax.set_xlabel('Time slice')
    ax.set_ylabel('Clusters')
    ax.set_title(title)
    ax.legend()


def plot_occupancy(axes, monitor, title=''):
    for ax, occupancy, label in zip(axes, monitor.occupancy, ['no cuts', 'all cuts']):
        img = ax.imshow(occupancy, origin='lower', aspect='auto', interpolation='none')
        ax.set_xlabel('Pad')
        ax.set_ylabel('Padrow')
        ax.set_title('{} ({})'.format(title, label))
        plt.colorbar(img, ax=ax)


def plot_gains_vs_pad(ax, gains, tpc_id, sector_id, title=''):
    """Gains of one sector along the padrows, one color per padrow."""

    records = sorted(
        (gid, record) for gid, record in gains.items()
        if (gid.tpc_id, gid.sector_id) == (tpc_id, sector_id) and record.table_value != INVALID_GAIN
        )
    if not records:
        return
    padrows = np.array([gid.padrow_id for gid, _ in records])
    pads = np.array([gid.pad_id for gid, _ in records])
    values = np.array([record.gain for _, record in records])
    sc = ax.scatter(pads, values, c=padrows, s=6, cmap='jet')
    ax.set_xlabel('Pad')
    ax.set_ylabel('Gain')
    ax.set_ylim(*GAIN_DISTRIBUTION_RANGE)
    ax.set_title(title)
    plt.colorbar(sc, ax=ax, label='Padrow')


def plot_gain_distribution(ax, gains, title=''):
    values = [record.gain for record in gains.values() if record.table_value != INVALID_GAIN]
    ax.hist(values, bins=GAIN_DISTRIBUTION_BINS, range=GAIN_DISTRIBUTION_RANGE, histtype='step', color='black')
    ax.set_xlabel('Gain')
    ax.set_ylabel('Pads')
    ax.set_title(title)
    ax.set_yscale('log')


def write_qa_report(analyzer, output_pdf):
    """
    Writes the QA plots of a finished analysis in a multi
    page pdf: gain distribution of every calibrated TPC and,
    for every sector, spectra, gains, time slices and pad
    occupancy.

    Parameters
    ----------
    analyzer: krcalib.calib.analyzer.KryptonAnalyzer
    output_pdf: string

    Returns
    -------

    """

    geometry = analyzer.geometry
    gains = analyzer.gains

    with PdfPages(output_pdf) as pdf:
        for tpc_id in analyzer.tpc_ids:
            tpc_name = geometry.tpc_name(tpc_id)
            tpc_gains = {gid: record for gid, record in gains.items() if gid.tpc_id == tpc_id}

            fig, ax = plt.subplots(1, 1, figsize=(8, 6))
            plot_gain_distribution(ax, tpc_gains, title='{}: pad gains'.format(tpc_name))
            pdf.savefig(fig)
            plt.close(fig)

            for sector_id in geometry.sectors(tpc_id):
                monitor = analyzer.sector_monitors[(tpc_id, sector_id)]
                title = '{} sector {}'.format(tpc_name, sector_id)

                fig, ax = plt.subplots(2, 2, figsize=(14, 10))
                plot_sector_spectra(
                    ax[0, 0], monitor,
                    sector_fit=analyzer.sector_fits.get((tpc_id, sector_id)),
                    title=title
                    )
                img = plot_sector_gain_map(ax[0, 1], gains, geometry, tpc_id, sector_id)
                fig.colorbar(img, ax=ax[0, 1], label='Gain')
                plot_gains_vs_pad(ax[1, 0], gains, tpc_id, sector_id, title=title)
                plot_time_slices(ax[1, 1], monitor, title=title)
                fig.tight_layout()
                pdf.savefig(fig)
                plt.close(fig)

                fig, ax = plt.subplots(1, 2, figsize=(14, 5))
                plot_occupancy(ax, monitor, title=title)
                fig.tight_layout()
                pdf.savefig(fig)
                plt.close(fig)

    logging.info("QA plots written to %s", output_pdf)
