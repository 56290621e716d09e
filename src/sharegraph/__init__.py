"""sharegraph — connection, household, and shared-access graph."""

__version__ = "0.1.0"
