"""NDVI Oracle.

Turns a STAC search query into a published vegetation index artifact:
search the catalogue, take the first scene, fetch bounded byte ranges of
its red and near-infrared bands, render an NDVI visualisation, and upload
the image plus its provenance metadata to content-addressed storage.
"""

__version__ = "0.1.0"
