"""Sales-report import for NomNom.

Parses payment-provider exports and drives the human-reviewed
parse -> match -> synthesize -> commit flow.
"""

from nomnom.importing.report_parser import ParseError, parse_report_file, parse_sales_report

__all__ = ["ParseError", "parse_report_file", "parse_sales_report"]
