"""
Uploaded document processing.

Extracts text from PDF or Markdown uploads, splits it into sentence-aligned
chunks and writes the document, its chunks and extracted terms to the graph.
"""

import asyncio
import io
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import pdfplumber
import structlog

from legal_graphrag.config import Settings, get_settings
from legal_graphrag.storage.neo4j_adapter import GraphStore, get_graph_store

logger = structlog.get_logger(__name__)

PAGE_BREAK = "\f"

LEGAL_RISK_KEYWORDS = ["著作権", "肖像権", "プライバシー", "AI生成", "法的リスク", "ライセンス", "商用利用"]

IMPORTANT_TERM_PATTERNS = [
    re.compile(r"AI生成[コンテンツ動画画像音声]*"),
    re.compile(r"[A-Za-z]+\s*[A-Za-z]*(?:AI|生成)"),
    re.compile(r"(?:Veo|Canva|Suno|Runway|Sora)"),
    re.compile(r"(?:著作権|肖像権|プライバシー権|知的財産権)"),
    re.compile(r"(?:ディープフェイク|フェイク動画)"),
]

_SENTENCE_END = re.compile(r"[。！？.!?]+")


class DocumentProcessingError(Exception):
    """The upload could not be parsed."""


@dataclass
class TextChunk:
    content: str
    page_number: int
    start_index: int
    end_index: int


@dataclass
class ExtractedDocument:
    """Text and metadata pulled from an upload."""

    text: str
    page_count: int
    title: str
    author: str = "Unknown"
    subject: str = ""
    keywords: str = ""


@dataclass
class ProcessedDocument:
    doc_id: str
    metadata: dict[str, Any]
    chunk_count: int
    terms: list[str] = field(default_factory=list)
    legal_risk_content: bool = False


def split_text_into_chunks(text: str, chunk_size: int = 1000) -> list[TextChunk]:
    """
    Group sentences into chunks of roughly ``chunk_size`` characters.

    Sentences are split on Japanese and ASCII terminators and re-terminated
    with 。. The page number advances with every form feed seen.
    """
    chunks: list[TextChunk] = []
    current = ""
    current_index = 0
    page_number = 1

    for sentence in _SENTENCE_END.split(text):
        trimmed = sentence.strip()
        if not trimmed:
            continue

        page_number += sentence.count(PAGE_BREAK)

        if len(current) + len(trimmed) > chunk_size and current:
            chunks.append(
                TextChunk(
                    content=current.strip(),
                    page_number=page_number,
                    start_index=current_index,
                    end_index=current_index + len(current),
                )
            )
            current_index += len(current)
            current = trimmed + "。"
        else:
            current += trimmed + "。"

    if current.strip():
        chunks.append(
            TextChunk(
                content=current.strip(),
                page_number=page_number,
                start_index=current_index,
                end_index=current_index + len(current),
            )
        )
    return chunks


def extract_important_terms(text: str) -> list[str]:
    """Distinct terms of 3 to 49 characters matched by the term patterns, in first-seen order."""
    terms: dict[str, None] = {}
    for pattern in IMPORTANT_TERM_PATTERNS:
        for match in pattern.findall(text):
            if 2 < len(match) < 50:
                terms[match.strip()] = None
    return list(terms)


def has_legal_risk_content(chunks: list[TextChunk]) -> bool:
    return any(keyword in chunk.content for chunk in chunks for keyword in LEGAL_RISK_KEYWORDS)


def is_markdown(file_name: str, content_type: str | None = None) -> bool:
    return file_name.lower().endswith(".md") or content_type in ("text/markdown", "text/x-markdown")


def extract_pdf(content: bytes, file_name: str) -> ExtractedDocument:
    """Page texts joined by form feeds, plus the PDF info dictionary."""
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
            info = pdf.metadata or {}
    except Exception as e:
        logger.error("pdf_extraction_failed", file=file_name, error=str(e))
        raise DocumentProcessingError(f"Failed to process PDF: {e}") from e

    logger.info("pdf_parsed", file=file_name, pages=len(pages))
    return ExtractedDocument(
        text=PAGE_BREAK.join(pages),
        page_count=len(pages),
        title=str(info.get("Title") or file_name),
        author=str(info.get("Author") or "Unknown"),
        subject=str(info.get("Subject") or ""),
        keywords=str(info.get("Keywords") or ""),
    )


def extract_markdown(content: bytes, file_name: str) -> ExtractedDocument:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DocumentProcessingError(f"Markdown is not valid UTF-8: {e}") from e
    return ExtractedDocument(
        text=text,
        page_count=1,
        title=re.sub(r"\.md$", "", file_name, flags=re.IGNORECASE),
        subject="Markdown document",
    )


class DocumentProcessor:
    """Turns an uploaded file into Document, Chunk and Entity nodes."""

    def __init__(self, store: GraphStore | None = None, settings: Settings | None = None):
        self.store = store or get_graph_store()
        self.settings = settings or get_settings()

    def extract(self, content: bytes, file_name: str, content_type: str | None = None) -> ExtractedDocument:
        if is_markdown(file_name, content_type):
            return extract_markdown(content, file_name)
        return extract_pdf(content, file_name)

    async def process(
        self,
        content: bytes,
        *,
        stored_name: str,
        original_name: str,
        member_email: str,
        content_type: str | None = None,
    ) -> ProcessedDocument:
        """
        Extract, chunk and persist an upload.

        Text extraction runs in a worker thread. Graph writes are issued one
        statement at a time; a failure part way through leaves the document
        with the chunks written so far.
        """
        extracted = await asyncio.to_thread(self.extract, content, original_name, content_type)
        chunks = split_text_into_chunks(extracted.text, self.settings.chunk_size)

        metadata = {
            "title": extracted.title,
            "author": extracted.author,
            "subject": extracted.subject,
            "keywords": extracted.keywords,
            "fileName": stored_name,
            "originalFileName": original_name,
            "pageCount": extracted.page_count,
            "uploadedBy": member_email,
            "organization": self.settings.organization,
        }
        doc_id = await self.store.create_document(metadata)

        for index, chunk in enumerate(chunks):
            await self.store.add_chunk(
                doc_id,
                content=chunk.content,
                page_number=chunk.page_number,
                chunk_index=index,
                start_index=chunk.start_index,
                end_index=chunk.end_index,
            )

        terms = extract_important_terms(" ".join(c.content for c in chunks))
        for term in terms:
            await self.store.link_extracted_entity(doc_id, term)

        legal = has_legal_risk_content(chunks)
        if legal:
            await self.store.mark_legal_document(doc_id)

        logger.info(
            "document_processed",
            file=stored_name,
            pages=extracted.page_count,
            chunks=len(chunks),
            terms=len(terms),
            legal_risk_content=legal,
        )
        return ProcessedDocument(
            doc_id=doc_id,
            metadata=metadata,
            chunk_count=len(chunks),
            terms=terms,
            legal_risk_content=legal,
        )


@lru_cache()
def get_document_processor() -> DocumentProcessor:
    """Get cached document processor instance."""
    return DocumentProcessor()
