# Licensed under a 3-clause BSD style license - see LICENSE


from .geometry import (
    GeometryId,
    GeometryError,
    TPCGeometry,
    load_geometry
)
from .monitoring import Monitoring_KrAnalysis
