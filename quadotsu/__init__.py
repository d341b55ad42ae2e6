"""quadotsu — three-threshold Otsu segmentation of 8-bit grayscale rasters."""

__version__ = "0.1.0"
