"""portctl command-line interface."""
