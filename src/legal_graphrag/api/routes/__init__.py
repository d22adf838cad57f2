"""
API route modules.
"""

from legal_graphrag.api.routes import (
    chat,
    diagnosis,
    documents,
    generator,
    graph,
    learn,
    members,
    upload,
    web,
)

__all__ = ["chat", "diagnosis", "documents", "generator", "graph", "learn", "members", "upload", "web"]
