"""
legal-graphrag: AI legal-risk diagnosis and legal document generation.

This package combines keyword retrieval over a Neo4j knowledge graph, web
search and Claude completions to assess the legal risk of an organization's
AI usage, and drafts terms of service, privacy policies and related
documents from that assessment.
"""

__version__ = "0.1.0"
__author__ = "legal-graphrag Team"

from legal_graphrag.config import get_settings

__all__ = ["get_settings", "__version__"]
