"""Pipeline stage functions.

Each activity performs a single unit of work within one oracle run:
- search_catalog: Validate and submit the STAC query, pick the scene
- fetch_band: Resolve the pixel window and download bounded band bytes
- derive_index: Render the NDVI visualisation and statistics
- publish_artifacts: Upload the image, then the provenance metadata
"""
