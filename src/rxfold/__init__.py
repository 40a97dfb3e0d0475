"""rxfold: import pharmacy prescription-history exports into a family medicine record.

Supports Walgreens exports (CSV and XLSX) plus a generic header-driven fallback.
"""

__version__ = "0.3.0"
