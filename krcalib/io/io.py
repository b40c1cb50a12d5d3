import json
import logging
import os
from importlib.resources import files

import numpy as np
import pandas as pd
from astropy.table import Table
from astropy.io.misc.hdf5 import (
    write_table_hdf5,
    read_table_hdf5
    )
from traitlets.config import Config


AUDIT_COLUMNS = [
    'tpc_id', 'sector_id', 'padrow_id', 'pad_id',
    'raw_peak_position', 'gain'
    ]


def get_default_config_file():
    """
    Provides the configuration file shipped with
    krcalib, used when no configuration file is
    given.

    Returns
    -------
    string

    """

    config_file = str(files('krcalib') / 'data' / 'krcalib_config.json')
    logging.info('Default config file used: %s', config_file)
    return config_file


def load_config(cfg_file):
    """
    Reads krcalib config file which must
    be stored as json file.

    Parameters
    ----------
    cfg_file: string
        Path to the config file

    Returns
    -------
    config: dict

    """

    with open(cfg_file) as json_file:
        config = Config(json.load(json_file))
    return config


def check_outdir(outdir):
    """
    Checks whether the outpath exists and creates
    it if that is not the case.

    Parameters
    ----------
    outdir: string
        Path

    Returns
    -------

    """

    if not os.path.exists(outdir):
        try:
            os.makedirs(outdir)
            logging.info("Created the output directory which didnt exist.")
        except FileExistsError:
            logging.info("Output directory created in the meantime by another process.")


def gains_to_table(gains):
    """
    Audit table of the derived gains, one row
    per fitted pad.

    Parameters
    ----------
    gains: dict
        GeometryId -> krcalib.calib.gains.GainRecord

    Returns
    -------
    astropy.table.Table

    """

    rows = [
        (gid.tpc_id, gid.sector_id, gid.padrow_id, gid.pad_id,
         record.raw_peak_position, record.gain)
        for gid, record in sorted(gains.items())
        ]
    if rows:
        columns = [np.array(column) for column in zip(*rows)]
    else:
        columns = [np.array([], dtype=int)] * 4 + [np.array([], dtype=float)] * 2
    table = Table(data=columns, names=AUDIT_COLUMNS)
    for name in AUDIT_COLUMNS[:4]:
        table[name] = table[name].astype(np.uint32)
    for name in AUDIT_COLUMNS[4:]:
        table[name] = table[name].astype(np.float64)
    return table


def write_audit_table(gains, output_file=None):
    """
    Writes the pad peak positions and the sanitized
    gains in a HDF5 file.

    Parameters
    ----------
    gains: dict
        GeometryId -> krcalib.calib.gains.GainRecord
    output_file: string

    Returns
    -------

    """

    table = gains_to_table(gains)
    write_table_hdf5(table, output_file, path='gains', overwrite=True, append=True)
    logging.info("Audit table with %d pads written to %s", len(table), output_file)


def read_audit_table(input_file):
    return read_table_hdf5(input_file, path='gains')


def write_spectra(spectra, output_file=None):
    """
    Stores the non-empty all-cuts pad spectra.

    Parameters
    ----------
    spectra: dict
        GeometryId -> krcalib.calib.spectra.SpectrumPair
    output_file: string

    Returns
    -------

    """

    filled = [(gid, pair.all_cuts) for gid, pair in sorted(spectra.items()) if pair.all_cuts.entries > 0]
    if not filled:
        logging.warning("All pad spectra are empty, nothing written to %s", output_file)
        return

    index = pd.MultiIndex.from_tuples(
        [tuple(gid) for gid, _ in filled],
        names=['tpc_id', 'sector_id', 'padrow_id', 'pad_id']
        )
    df_hists = pd.DataFrame(
        np.array([spectrum.counts for _, spectrum in filled]),
        index=index
        )
    df_ranges = pd.DataFrame(
        {
            'x_min': [spectrum.x_min for _, spectrum in filled],
            'x_max': [spectrum.x_max for _, spectrum in filled],
            'entries': [spectrum.entries for _, spectrum in filled],
        },
        index=index
        )
    df_hists.to_hdf(output_file, key='df_hists', mode='w')
    df_ranges.to_hdf(output_file, key='df_ranges', mode='a')
    logging.info("%d pad spectra written to %s", len(filled), output_file)
