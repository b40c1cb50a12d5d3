# Licensed under a 3-clause BSD style license - see LICENSE


from .io import (
    get_default_config_file,
    load_config,
    check_outdir,
    gains_to_table,
    write_audit_table,
    read_audit_table,
    write_spectra
)
from .gain_table import (
    GainTableWriter,
    write_gain_table,
    read_gain_table
)
from .cluster_source import (
    parse_tree_name,
    read_cluster_file,
    read_clusters
    )
