"""BlackCut - black frame cut point detection and lossless video splitting."""

__version__ = "1.0.0"
