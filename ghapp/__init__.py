"""GitHub App authentication toolkit."""

__version__ = "0.1.0"
