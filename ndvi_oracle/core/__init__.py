"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants and documented defaults
- exceptions: Custom exception hierarchy
- trigger: Trigger envelope decoding and output encoding
"""
