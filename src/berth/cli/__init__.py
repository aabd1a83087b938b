"""Berth command-line interface (``berth``)."""
