"""npm-scout: find truly new packages on the npm registry."""

__version__ = "0.3.0"
