"""The woody package."""

# The version string will be replaced by the release tooling.
__version__ = "0.0.0"
