"""Input/output: persisted fields and mass-balance reports."""

from pyvadose.io.fields import read_field, write_field, time_name
from pyvadose.io.reports import MassBalanceCSV, MassBalanceReports

__all__ = [
    "read_field",
    "write_field",
    "time_name",
    "MassBalanceCSV",
    "MassBalanceReports",
]
