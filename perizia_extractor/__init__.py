"""Field extraction for Italian judicial-auction appraisals (perizie)"""
from .extractor import PeriziaExtractor

__version__ = "0.1.0"

__all__ = ["PeriziaExtractor"]
