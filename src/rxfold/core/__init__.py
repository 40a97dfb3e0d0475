"""Core parsing helpers."""

from rxfold.core.utils import (
    format_us_date,
    parse_fill_date,
    parse_medication_string,
    parse_price,
    parse_quantity,
)
