"""Migration workbook intake: import, validate and deduplicate tracking workbooks."""

__version__ = "0.1.0"
