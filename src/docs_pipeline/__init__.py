"""Build and publish pipeline for the SQL templating documentation site."""

__version__ = "0.1.0"
