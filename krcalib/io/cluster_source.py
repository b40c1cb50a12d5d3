import logging
import re

import uproot

from krcalib.calib.spectra import ClusterEvent
from krcalib.utils.monitoring import Monitoring_KrAnalysis


# [TPCName]Sector[SectorId]Clusters
TREE_NAME_PATTERN = re.compile(r'^(?P<tpc>.+?)Sector(?P<sector>\d+)Clusters$')

BRANCHES = [
    'fCharge',
    'fMaxADC',
    'fTimeSlice',
    'fNPixels',
    'fNTimeSlices',
    'fNPads',
    'fPadrow',
    'fPad'
    ]


def parse_tree_name(tree_name):
    """
    Identifies TPC and sector of a cluster tree.

    Parameters
    ----------
    tree_name: string

    Returns
    -------
    tuple (string, int) or None
        TPC name and sector id, None if the tree is
        not a cluster tree

    """

    match = TREE_NAME_PATTERN.match(tree_name.split(';')[0])
    if match is None:
        return None
    return match.group('tpc'), int(match.group('sector'))


def events_from_arrays(arrays, tpc_id, sector_id):
    for charge, max_adc, time_slice, n_pixels, n_time_slices, n_pads, padrow, pad in zip(
            *(arrays[branch] for branch in BRANCHES)):
        yield ClusterEvent(
            tpc_id=tpc_id,
            sector_id=sector_id,
            padrow=int(padrow),
            pad=int(pad),
            charge=float(charge),
            max_adc=int(max_adc),
            time_slice=int(time_slice),
            n_pixels=int(n_pixels),
            n_pads=int(n_pads),
            n_time_slices=int(n_time_slices)
            )


def read_tree(tree):
    return tree.arrays(BRANCHES, library='np')


def read_cluster_file(input_file, geometry, tpc_names=None):
    """
    Reads the Krypton cluster trees of one ROOT file. All
    trees are read before any cluster is used, so that a
    file failing while being read contributes no cluster.

    Parameters
    ----------
    input_file: string
        Path to a ROOT file with one cluster tree
        per sector
    geometry: krcalib.utils.geometry.TPCGeometry
    tpc_names: list of string
        Trees of other TPCs are skipped. All TPCs if None.

    Returns
    -------
    list of tuple (int, int, dict)
        TPC id, sector id and branch arrays of every
        selected cluster tree

    Raises
    ------
    OSError
        The file has no keys

    """

    trees = []
    with uproot.open(input_file) as root_file:
        classnames = root_file.classnames(cycle=False)
        if not classnames:
            raise OSError("{} has no keys".format(input_file))
        for name, classname in classnames.items():
            if classname != 'TTree':
                continue
            tree = root_file[name]
            if tree.num_entries == 0:
                continue
            identified = parse_tree_name(name)
            if identified is None:
                logging.warning("Tree %s in %s is not a cluster tree, skipped.", name, input_file)
                continue
            tpc_name, sector_id = identified
            if tpc_names is not None and tpc_name not in tpc_names:
                continue
            try:
                tpc_id = geometry.tpc_id(tpc_name)
            except KeyError:
                logging.warning("Tree %s in %s: TPC %s is not in the geometry, skipped.", name, input_file, tpc_name)
                continue
            trees.append((tpc_id, sector_id, read_tree(tree)))
    return trees


def read_clusters(input_files, geometry, tpc_names=None, processing_info=None):
    """
    Reads Krypton clusters from all input files, in the
    order of the files. Files which can not be read
    completely are skipped.

    Parameters
    ----------
    input_files: list of string
    geometry: krcalib.utils.geometry.TPCGeometry
    tpc_names: list of string
    processing_info: krcalib.utils.monitoring.Monitoring_KrAnalysis

    Returns
    -------
    generator of krcalib.calib.spectra.ClusterEvent

    Raises
    ------
    OSError
        None of the input files could be read

    """

    if processing_info is None:
        processing_info = Monitoring_KrAnalysis()
    processing_info.input_files = list(input_files)
    n_files = len(processing_info.input_files)

    previous_percentage = 0
    for n, input_file in enumerate(processing_info.input_files):
        percentage = round(100 * n / n_files)
        if percentage != previous_percentage and percentage % 5 == 0:
            logging.info("Processing file %d / %d (%d%% complete).", n + 1, n_files, percentage)
        previous_percentage = percentage

        try:
            trees = read_cluster_file(input_file, geometry, tpc_names=tpc_names)
        except (OSError, ValueError, KeyError) as e:
            logging.warning("Error reading input file %s: %s. Skipping.", input_file, e)
            processing_info.n_files_skipped += 1
            continue
        processing_info.n_files_processed += 1

        for tpc_id, sector_id, arrays in trees:
            yield from events_from_arrays(arrays, tpc_id, sector_id)

    if n_files > 0 and processing_info.n_files_processed == 0:
        raise OSError("None of the {} input files could be read".format(n_files))
