"""Dataset and feeding-system export loaders."""

from feedledger.ingest.dataset import load_dataset
from feedledger.ingest.gea_export import GeaExport, GeaImportError, parse_gea_export

__all__ = ["GeaExport", "GeaImportError", "load_dataset", "parse_gea_export"]
