"""Structural validation of single-cell analysis state files"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("scstate")
except PackageNotFoundError:
    __version__ = "uninstalled"
