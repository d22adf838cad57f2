"""
Business logic services for legal-graphrag.
"""

from legal_graphrag.services.llm_service import LLMService, get_llm_service
from legal_graphrag.services.graph_search import GraphSearchService, get_graph_search_service
from legal_graphrag.services.web_search import WebSearchService, get_web_search_service
from legal_graphrag.services.learning import LearningService, get_learning_service
from legal_graphrag.services.diagnosis import DiagnosisService, get_diagnosis_service
from legal_graphrag.services.document_generator import DocumentGenerator, get_document_generator
from legal_graphrag.services.document_processor import DocumentProcessor, get_document_processor
from legal_graphrag.services.document_service import DocumentService, get_document_service
from legal_graphrag.services.member import MemberService, get_member_service
from legal_graphrag.services.chat_service import ChatService, get_chat_service

__all__ = [
    "LLMService",
    "get_llm_service",
    "GraphSearchService",
    "get_graph_search_service",
    "WebSearchService",
    "get_web_search_service",
    "LearningService",
    "get_learning_service",
    "DiagnosisService",
    "get_diagnosis_service",
    "DocumentGenerator",
    "get_document_generator",
    "DocumentProcessor",
    "get_document_processor",
    "DocumentService",
    "get_document_service",
    "MemberService",
    "get_member_service",
    "ChatService",
    "get_chat_service",
]
