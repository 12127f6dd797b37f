"""
app/parsing package marker.
"""

from app.parsing.csv_reader import ParsedTable, TableParseError, read_table
from app.parsing.encoding_detector import EncodingDetector, detect_and_convert
from app.parsing.header_analyzer import HeaderAnalyzer

__all__ = [
    "EncodingDetector",
    "HeaderAnalyzer",
    "ParsedTable",
    "TableParseError",
    "detect_and_convert",
    "read_table",
]
