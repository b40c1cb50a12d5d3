import json
import logging
from collections import OrderedDict, namedtuple


GeometryId = namedtuple('GeometryId', ['tpc_id', 'sector_id', 'padrow_id', 'pad_id'])


class GeometryError(Exception):
    """Detector geometry could not be read or is inconsistent."""


class TPCGeometry:

    """
    TPC readout geometry: chambers -> sectors -> padrows -> pads.
    The enumeration order of the geometry is the order in which
    gain tables are written.

    Attributes
    ----------
        tpc_names: OrderedDict
            TPC id -> TPC name
        layout: OrderedDict
            TPC id -> OrderedDict(sector id -> OrderedDict(padrow id -> number of pads))
        pad_gains: dict
            GeometryId -> gain currently stored for the pad
            (used when previous gains are updated)

    """

    def __init__(self):
        self.tpc_names = OrderedDict()
        self.layout = OrderedDict()
        self.pad_gains = {}

    def add_tpc(self, tpc_id, name):
        if tpc_id in self.tpc_names:
            raise GeometryError("TPC id {} defined twice".format(tpc_id))
        if name in self.tpc_names.values():
            raise GeometryError("TPC name {} defined twice".format(name))
        self.tpc_names[tpc_id] = name
        self.layout[tpc_id] = OrderedDict()

    def add_padrow(self, tpc_id, sector_id, padrow_id, n_pads):
        if n_pads < 1:
            raise GeometryError(
                "Padrow {} of {} sector {} has no pads".format(
                    padrow_id, self.tpc_name(tpc_id), sector_id)
                )
        sector = self.layout[tpc_id].setdefault(sector_id, OrderedDict())
        if padrow_id in sector:
            raise GeometryError(
                "Padrow {} of {} sector {} defined twice".format(
                    padrow_id, self.tpc_name(tpc_id), sector_id)
                )
        sector[padrow_id] = n_pads

    def tpc_ids(self):
        return list(self.tpc_names)

    def tpc_name(self, tpc_id):
        return self.tpc_names[tpc_id]

    def tpc_id(self, name):
        for tpc_id, tpc_name in self.tpc_names.items():
            if tpc_name == name:
                return tpc_id
        raise KeyError("Unknown TPC {}".format(name))

    def sectors(self, tpc_id):
        return list(self.layout[tpc_id])

    def padrows(self, tpc_id, sector_id):
        return list(self.layout[tpc_id][sector_id])

    def n_pads(self, tpc_id, sector_id, padrow_id):
        return self.layout[tpc_id][sector_id][padrow_id]

    def max_pads(self, tpc_id, sector_id):
        return max(self.layout[tpc_id][sector_id].values())

    def contains(self, geometry_id):
        try:
            n_pads = self.n_pads(
                geometry_id.tpc_id, geometry_id.sector_id, geometry_id.padrow_id
                )
        except KeyError:
            return False
        return 1 <= geometry_id.pad_id <= n_pads

    def iter_pads(self, tpc_ids=None):
        """
        Iterates over all pads in geometry order.

        Parameters
        ----------
        tpc_ids: list of int
            Restrict the iteration to these TPCs. All
            TPCs if None.

        Returns
        -------
        generator of GeometryId

        """

        for tpc_id, sectors in self.layout.items():
            if tpc_ids is not None and tpc_id not in tpc_ids:
                continue
            for sector_id, padrows in sectors.items():
                for padrow_id, n_pads in padrows.items():
                    for pad_id in range(1, n_pads + 1):
                        yield GeometryId(tpc_id, sector_id, padrow_id, pad_id)

    def pad_gain(self, geometry_id):
        gain = self.pad_gains.get(geometry_id, 1.)
        # invalid (-1) entries of a previous table mean no correction
        return gain if gain > 0 else 1.

    def set_pad_gains(self, gains):
        """
        Attaches previously derived pad gains, e.g. read
        from a gain table with krcalib.io.read_gain_table.

        Parameters
        ----------
        gains: dict
            GeometryId -> gain

        """

        unknown = [gid for gid in gains if not self.contains(gid)]
        if unknown:
            raise GeometryError(
                "{} pad gains do not match the geometry, first: {}".format(
                    len(unknown), unknown[0])
                )
        self.pad_gains = dict(gains)
        logging.info("%d previous pad gains attached to the geometry.", len(self.pad_gains))


def load_geometry(geometry_file):
    """
    Reads the TPC geometry description stored as json file:
    {"tpcs": [{"name": ..., "id": ..., "sectors":
    [{"id": ..., "padrows": [{"id": ..., "n_pads": ...}]}]}]}

    Parameters
    ----------
    geometry_file: string
        Path to the geometry file

    Returns
    -------
    geometry: krcalib.utils.geometry.TPCGeometry

    """

    try:
        with open(geometry_file) as json_file:
            description = json.load(json_file)
    except (OSError, ValueError) as e:
        raise GeometryError("Cannot read geometry file {}: {}".format(geometry_file, e)) from e

    geometry = TPCGeometry()
    try:
        for tpc in description['tpcs']:
            tpc_id = int(tpc['id'])
            geometry.add_tpc(tpc_id, tpc['name'])
            for sector in tpc['sectors']:
                for padrow in sector['padrows']:
                    geometry.add_padrow(
                        tpc_id, int(sector['id']),
                        int(padrow['id']), int(padrow['n_pads'])
                        )
    except (KeyError, TypeError, ValueError) as e:
        raise GeometryError("Malformed geometry file {}: {}".format(geometry_file, e)) from e

    if not geometry.tpc_names:
        raise GeometryError("No TPC defined in geometry file {}".format(geometry_file))

    logging.info(
        "Geometry loaded from %s: %d TPCs, %d pads",
        geometry_file, len(geometry.tpc_names), sum(1 for _ in geometry.iter_pads())
        )
    return geometry
