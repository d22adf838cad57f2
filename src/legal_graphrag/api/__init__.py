"""
HTTP API for legal-graphrag.
"""
