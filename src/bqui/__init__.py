"""bqui - a keyboard-driven terminal explorer for BigQuery catalogs."""

__version__ = "0.1.0"
