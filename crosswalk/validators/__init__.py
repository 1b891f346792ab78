"""
crosswalk/validators package marker.
"""

from crosswalk.validators.crosswalk_validator import CrosswalkValidator, log_report
from crosswalk.validators.row_validator import WeightRowValidator, is_valid_weight

__all__ = [
    "CrosswalkValidator",
    "WeightRowValidator",
    "is_valid_weight",
    "log_report",
]
