"""Low-level helpers used by configuration loading."""
