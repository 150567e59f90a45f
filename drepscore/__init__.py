"""DRep accountability scoring and Koios sync pipeline."""

__version__ = "0.4.0"
