import logging
import xml.etree.ElementTree as ET

from krcalib.calib.gains import INVALID_GAIN
from krcalib.utils.geometry import GeometryId, GeometryError


XML_HEADER = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '\n'
    '<PadByPadGain\n'
    '  xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"\n'
    '  xsi:noNamespaceSchemaLocation="[SCHEMAPATH]/TPCPadGain_DataFormat.xsd">\n'
    '\n'
    )
XML_FOOTER = '</PadByPadGain>\n'


def format_gain(value):
    """Six significant digits, as the reconstruction expects them."""
    return '%g' % value


class GainTableWriter:

    """
    Writes pad gains in the nested TPC / Sector / Padrow
    layout read by the reconstruction. Pads are written in
    geometry order, one value per pad, -1 for pads without an
    acceptable gain.

    Attributes
    ----------
        geometry: krcalib.utils.geometry.TPCGeometry
        tpc_ids: list of int
            TPCs to write, all TPCs of the geometry if None

    """

    def __init__(self, geometry, tpc_ids=None):
        self.geometry = geometry
        self.tpc_ids = tpc_ids

    def padrow_values(self, gains, tpc_id, sector_id, padrow_id):
        values = []
        for pad_id in range(1, self.geometry.n_pads(tpc_id, sector_id, padrow_id) + 1):
            record = gains.get(GeometryId(tpc_id, sector_id, padrow_id, pad_id))
            values.append(INVALID_GAIN if record is None else record.table_value)
        return values

    def lines(self, gains):
        """
        Parameters
        ----------
        gains: dict
            GeometryId -> krcalib.calib.gains.GainRecord

        Returns
        -------
        generator of string

        """

        yield XML_HEADER
        for tpc_id in self.geometry.tpc_ids():
            if self.tpc_ids is not None and tpc_id not in self.tpc_ids:
                continue
            yield '  <TPC name="{}">\n'.format(self.geometry.tpc_name(tpc_id))
            for sector_id in self.geometry.sectors(tpc_id):
                yield '    <Sector id="{}">\n'.format(sector_id)
                for padrow_id in self.geometry.padrows(tpc_id, sector_id):
                    values = self.padrow_values(gains, tpc_id, sector_id, padrow_id)
                    yield '      <Padrow id="{}">\n'.format(padrow_id)
                    yield '        <PadGains> {}</PadGains>\n'.format(
                        ''.join(format_gain(value) + ' ' for value in values)
                        )
                    yield '      </Padrow>\n'
                yield '    </Sector>\n'
            yield '  </TPC>\n'
        yield XML_FOOTER

    def format(self, gains):
        return ''.join(self.lines(gains))

    def write(self, gains, output_file):
        with open(output_file, 'w') as f:
            f.writelines(self.lines(gains))
        logging.info("Pad gains written to file %s", output_file)


def write_gain_table(gains, geometry, output_file=None, tpc_ids=None):
    """
    Helper function to write the pad gain table

    Parameters
    ----------
    gains: dict
        GeometryId -> krcalib.calib.gains.GainRecord
    geometry: krcalib.utils.geometry.TPCGeometry
    output_file: string
    tpc_ids: list of int

    Returns
    -------

    """

    GainTableWriter(geometry, tpc_ids=tpc_ids).write(gains, output_file)


def read_gain_table(gain_file, geometry):
    """
    Reads a pad gain table, e.g. the result of a previous
    calibration which should be updated.

    Parameters
    ----------
    gain_file: string
        Path to the gain table
    geometry: krcalib.utils.geometry.TPCGeometry

    Returns
    -------
    gains: dict
        GeometryId -> gain

    """

    try:
        root = ET.parse(gain_file).getroot()
    except (OSError, ET.ParseError) as e:
        raise GeometryError("Cannot read pad gain file {}: {}".format(gain_file, e)) from e

    gains = {}
    for tpc in root.iter('TPC'):
        try:
            tpc_id = geometry.tpc_id(tpc.get('name'))
        except KeyError as e:
            raise GeometryError("Gain file {}: {}".format(gain_file, e)) from e
        for sector in tpc.iter('Sector'):
            sector_id = int(sector.get('id'))
            for padrow in sector.iter('Padrow'):
                padrow_id = int(padrow.get('id'))
                text = padrow.findtext('PadGains', default='')
                values = [float(value) for value in text.split()]
                try:
                    n_pads = geometry.n_pads(tpc_id, sector_id, padrow_id)
                except KeyError as e:
                    raise GeometryError(
                        "Gain file {}: {} sector {} padrow {} is not in the geometry".format(
                            gain_file, tpc.get('name'), sector_id, padrow_id)
                        ) from e
                if len(values) != n_pads:
                    raise GeometryError(
                        "Gain file {}: {} sector {} padrow {} has {} gains for {} pads".format(
                            gain_file, tpc.get('name'), sector_id, padrow_id, len(values), n_pads)
                        )
                for pad_id, value in enumerate(values, start=1):
                    gains[GeometryId(tpc_id, sector_id, padrow_id, pad_id)] = value

    logging.info("%d pad gains read from %s", len(gains), gain_file)
    return gains
