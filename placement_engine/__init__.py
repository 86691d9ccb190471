"""Career scoring, job visibility and match ranking for the placement portal."""

__version__ = "0.1.0"
