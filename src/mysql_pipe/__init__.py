"""Stream records into a MySQL table, or filter a stream against it."""

__version__ = "0.1.0"
