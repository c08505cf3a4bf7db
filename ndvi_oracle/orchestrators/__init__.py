"""Pipeline orchestration.

Runs one oracle invocation end to end:
1. Decode trigger → STAC query
2. Search catalog → first feature → red/NIR assets
3. Fetch both bands concurrently → render NDVI
4. Upload image, then metadata → OracleResult
"""
