"""Spreadsheet export of the filtered article view."""

from .excel import COLUMNS, build_workbook, export_filename, export_to_bytes, save_export

__all__ = ["COLUMNS", "build_workbook", "export_filename", "export_to_bytes", "save_export"]
