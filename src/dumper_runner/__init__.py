"""Run the dumper gallery downloader and stream its log."""

__version__ = "0.1.0"
