"""Command line interface for escribiendo."""
