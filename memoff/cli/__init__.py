"""memoff command line interface."""
