"""Payroll period processing and department approval service."""

__version__ = "0.1.0"
