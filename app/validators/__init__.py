"""
app/validators package marker.
"""

from app.validators.file_validator import FileCheckIssue, check_upload
from app.validators.order_validator import OrderRowValidator, parse_date, parse_price

__all__ = [
    "FileCheckIssue",
    "OrderRowValidator",
    "check_upload",
    "parse_date",
    "parse_price",
]
