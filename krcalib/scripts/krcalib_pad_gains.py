#!/usr/bin/env python

"""
A script to derive pad by pad gains of the TPCs from
Krypton calibration runs.
- Inputs are ROOT files with one cluster tree per TPC sector,
and the TPC geometry.
- Outputs are the pad gain table (XML) read by the
reconstruction, an audit table and the pad spectra (HDF5),
QA plots (pdf) and a log file.

Usage:

$> python krcalib_pad_gains.py
--input-files run1_clusters.root run2_clusters.root
--output-prefix run1
--geometry tpc_geometry.json
--config krcalib_config.json
--update-gains previous-KryptonAnalysis-KryptonPadGains.xml
--output-dir ./

"""

import matplotlib
matplotlib.use('Agg')

import krcalib
from krcalib.calib import (
    calibration_config,
    KryptonAnalyzer,
    UndefinedSectorAverageError
)
from krcalib.io import (
    get_default_config_file,
    load_config,
    check_outdir,
    read_clusters,
    read_gain_table,
    write_gain_table,
    write_audit_table,
    write_spectra
)
from krcalib.utils import (
    GeometryError,
    load_geometry,
    Monitoring_KrAnalysis
)
from krcalib.analysis import write_qa_report

import os
import sys
import argparse
import logging

from pydantic import ValidationError


def parse_args():

    parser = argparse.ArgumentParser(description="Pad by pad TPC gains from Krypton clusters")

    # Required arguments
    parser.add_argument(
                    '--input-files', '-i', type=str,
                    nargs='+',
                    dest='input_files',
                    help='Paths to the ROOT files with Krypton clusters',
                    required=True
                    )
    parser.add_argument(
                    '--output-prefix', '-o', type=str,
                    dest='output_prefix',
                    help='Prefix of the output files, suffixed with -KryptonAnalysis',
                    required=True
                    )
    parser.add_argument(
                    '--geometry', '-g', type=str,
                    dest='geometry_file',
                    help='Path to the TPC geometry file.',
                    required=True
                    )

    # Optional arguments
    parser.add_argument(
                    '--config', '-c', action='store', type=str,
                    dest='config_file',
                    help='Path to a configuration file. Default configuration of krcalib if not given.',
                    default=None
                    )
    parser.add_argument(
                    '--update-gains', '-u', type=str,
                    dest='previous_gains',
                    help='Pad gain table of a previous calibration. New gains are derived on top of these.',
                    default=None
                    )
    parser.add_argument(
                    '--output-dir', '-d', type=str,
                    dest='outdir',
                    help='Path to store the output files',
                    default='./'
                    )
    parser.add_argument(
                    '--no-plots',
                    action='store_true',
                    help='Do not produce the pdf with QA plots.',
                    dest='no_plots'
                    )

    args = parser.parse_args()
    return args


def main():

    args = parse_args()
    processing_info = Monitoring_KrAnalysis()

    outdir = args.outdir
    output_name = os.path.basename(args.output_prefix) + "-KryptonAnalysis"
    output_gain_table = os.path.join(outdir, output_name + "-KryptonPadGains.xml")
    output_audit = os.path.join(outdir, output_name + ".h5")
    output_spectra = os.path.join(outdir, output_name + "_histograms.h5")
    output_pdf = os.path.join(outdir, output_name + ".pdf")
    output_logfile = os.path.join(outdir, output_name + ".log")

    check_outdir(outdir)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers= [
            logging.FileHandler(output_logfile, 'w+'),
            logging.StreamHandler(stream=sys.stdout)
            ]
    )

    logging.info('krcalib version: %s', krcalib.__version__)
    logging.info('Input files: %d', len(args.input_files))
    logging.info('Output gain table: %s', output_gain_table)

    config_file = args.config_file
    if config_file is None:
        config_file = get_default_config_file()
    logging.info('Config file: %s', config_file)

    try:
        config = calibration_config(load_config(config_file))
    except (OSError, KeyError, ValueError, ValidationError) as e:
        logging.error('Invalid configuration in %s: %s', config_file, e)
        sys.exit(1)
    config.log_settings()

    try:
        geometry = load_geometry(args.geometry_file)
        if args.previous_gains is not None:
            logging.info('Updating previous gains from %s', args.previous_gains)
            geometry.set_pad_gains(read_gain_table(args.previous_gains, geometry))
    except GeometryError as e:
        logging.error(e)
        sys.exit(1)

    update_gains = args.previous_gains is not None

    try:
        analyzer = KryptonAnalyzer(
            geometry, config,
            update_gains=update_gains,
            processing_info=processing_info
            )
        events = read_clusters(
            args.input_files, geometry,
            tpc_names=config.tpc_list,
            processing_info=processing_info
            )
        gains = analyzer.run(events)
    except (GeometryError, UndefinedSectorAverageError, OSError) as e:
        logging.error(e)
        processing_info.log_summary()
        sys.exit(1)

    write_gain_table(gains, geometry, output_file=output_gain_table, tpc_ids=analyzer.tpc_ids)
    write_audit_table(gains, output_file=output_audit)
    write_spectra(analyzer.spectra, output_file=output_spectra)

    if not args.no_plots:
        write_qa_report(analyzer, output_pdf)

    processing_info.log_summary()
    logging.info('Krypton analysis finished.')


if __name__ == '__main__':
    main()
