"""
Neo4j graph database adapter.

Every Cypher statement of the service lives here. Rows come back as plain
dicts with Neo4j temporal values converted to ISO-8601 strings.
"""

from functools import lru_cache
from typing import Any

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import AuthError, ServiceUnavailable, SessionExpired

from legal_graphrag.config import get_settings

logger = structlog.get_logger(__name__)


class GraphStoreUnavailable(RuntimeError):
    """The graph database cannot be reached."""


def to_plain(value: Any) -> Any:
    """Convert driver values (temporal types, nested lists/maps) to JSON-safe ones."""
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if hasattr(value, "iso_format"):
        return value.iso_format()
    return value


class GraphStore:
    """
    Neo4j graph store.

    Holds documents, chunks, entities, web sources, legal updates and members
    of the legal knowledge graph.
    """

    def __init__(
        self,
        uri: str | None = None,
        user: str | None = None,
        password: str | None = None,
    ):
        settings = get_settings()
        self.uri = uri or settings.neo4j_uri
        self.user = user or settings.neo4j_user
        self.password = password if password is not None else settings.neo4j_password

        self._driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """Initialize the Neo4j driver."""
        if self._driver is None:
            self._driver = AsyncGraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
            )
            logger.info("neo4j_connected", uri=self.uri)

    async def close(self) -> None:
        """Close the Neo4j driver."""
        if self._driver:
            await self._driver.close()
            self._driver = None
            logger.info("neo4j_disconnected")

    @property
    def driver(self) -> AsyncDriver:
        """Get the Neo4j driver, raising if not connected."""
        if self._driver is None:
            raise RuntimeError("Neo4j driver not connected. Call connect() first.")
        return self._driver

    async def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            await self.connect()
            async with self.driver.session() as session:
                await session.run("RETURN 1")
            return True
        except (ServiceUnavailable, AuthError) as e:
            logger.error("neo4j_health_check_failed", error=str(e))
            return False

    async def _run(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run one statement and return its rows."""
        await self.connect()
        try:
            async with self.driver.session() as session:
                result = await session.run(query, params or {})
                records = await result.data()
        except (ServiceUnavailable, SessionExpired, AuthError) as e:
            raise GraphStoreUnavailable(str(e)) from e
        return [to_plain(r) for r in records]

    # =========================================================================
    # Schema Setup
    # =========================================================================

    async def setup_schema(self) -> None:
        """Create indexes and constraints for the knowledge graph."""
        await self.connect()
        async with self.driver.session() as session:
            constraints = [
                "CREATE CONSTRAINT member_email IF NOT EXISTS FOR (m:Member) REQUIRE m.email IS UNIQUE",
                "CREATE CONSTRAINT websource_url IF NOT EXISTS FOR (s:WebSource) REQUIRE s.url IS UNIQUE",
            ]

            indexes = [
                "CREATE INDEX document_file_name IF NOT EXISTS FOR (d:Document) ON (d.fileName)",
                "CREATE INDEX document_uploaded_by IF NOT EXISTS FOR (d:Document) ON (d.uploadedBy)",
                "CREATE INDEX document_is_default IF NOT EXISTS FOR (d:Document) ON (d.isDefault)",
                "CREATE INDEX entity_name IF NOT EXISTS FOR (e:Entity) ON (e.name)",
                "CREATE INDEX chunk_created_at IF NOT EXISTS FOR (c:Chunk) ON (c.createdAt)",
                "CREATE INDEX legal_update_date IF NOT EXISTS FOR (u:LegalUpdate) ON (u.date)",
            ]

            for query in constraints + indexes:
                try:
                    await session.run(query)
                except Exception as e:
                    logger.warning("schema_setup_warning", query=query, error=str(e))

        logger.info("neo4j_schema_setup_complete")

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def search_chunks(self, keywords: list[str], limit: int = 15) -> list[dict[str, Any]]:
        """Rank chunks of documents and web sources matching any keyword."""
        query = """
        MATCH (source)-[:CONTAINS]->(chunk:Chunk)
        WHERE (source:Document OR source:WebSource)
        AND ANY(keyword IN $keywords WHERE
            chunk.content CONTAINS keyword OR
            chunk.title CONTAINS keyword OR
            source.title CONTAINS keyword
        )
        OPTIONAL MATCH (chunk)-[:RELATES_TO|MENTIONS]->(entity:Entity)
        OPTIONAL MATCH (chunk)-[:IS_UPDATE]->(update:LegalUpdate)
        WITH source, chunk, collect(DISTINCT entity.name) AS relatedEntities, update
        RETURN
            CASE WHEN source:Document THEN source.title ELSE source.title + ' (Web)' END AS documentTitle,
            CASE WHEN source:Document THEN source.source ELSE source.url END AS documentSource,
            chunk.content AS content,
            chunk.title AS chunkTitle,
            relatedEntities,
            CASE
                WHEN source:Document AND source.isDefault = true THEN 1.8
                WHEN chunk.relevanceScore IS NOT NULL THEN chunk.relevanceScore
                WHEN update IS NOT NULL AND update.importance = 'high' THEN 1.5
                WHEN update IS NOT NULL AND update.importance = 'medium' THEN 1.2
                WHEN chunk.createdAt > datetime() - duration('P7D') THEN 1.3
                WHEN chunk.createdAt > datetime() - duration('P30D') THEN 1.1
                ELSE 0.8
            END AS score,
            chunk.createdAt AS createdAt,
            update.importance AS updateImportance,
            CASE WHEN source:Document THEN coalesce(source.isDefault, false) ELSE false END AS isDefault
        ORDER BY score DESC, createdAt DESC
        LIMIT $limit
        """
        return await self._run(query, {"keywords": keywords, "limit": limit})

    async def find_related_entities(self, text: str, limit: int = 5) -> list[dict[str, Any]]:
        """Entities whose name or type contains the text."""
        query = """
        MATCH (entity:Entity)
        WHERE entity.name CONTAINS $query OR entity.type CONTAINS $query
        OPTIONAL MATCH (entity)-[:RELATES_TO]-(relatedEntity:Entity)
        RETURN
            entity.name AS name,
            entity.type AS type,
            entity.description AS description,
            collect(DISTINCT relatedEntity.name) AS relatedEntities
        LIMIT $limit
        """
        return await self._run(query, {"query": text, "limit": limit})

    # =========================================================================
    # Learning
    # =========================================================================

    async def save_web_result(
        self,
        *,
        url: str,
        title: str,
        snippet: str,
        display_link: str,
        content: str,
        source: str,
        query: str,
        entities: list[str],
        legal_update_importance: str | None,
    ) -> None:
        """Upsert a WebSource and attach a new Chunk with its entities and update tag."""
        cypher = """
        MERGE (source:WebSource {url: $url})
        SET source.title = $title,
            source.lastUpdated = datetime(),
            source.snippet = $snippet,
            source.displayLink = $displayLink
        CREATE (chunk:Chunk {
            id: randomUUID(),
            content: $content,
            title: $title,
            source: $source,
            url: $url,
            createdAt: datetime(),
            queryOrigin: $query
        })
        CREATE (source)-[:CONTAINS]->(chunk)
        FOREACH (entityName IN $entities |
            MERGE (entity:Entity {name: entityName})
            CREATE (chunk)-[:MENTIONS]->(entity)
        )
        FOREACH (_ IN CASE WHEN $importance IS NULL THEN [] ELSE [1] END |
            CREATE (update:LegalUpdate {date: datetime(), topic: $query, importance: $importance})
            CREATE (chunk)-[:IS_UPDATE]->(update)
        )
        """
        await self._run(
            cypher,
            {
                "url": url,
                "title": title,
                "snippet": snippet,
                "displayLink": display_link,
                "content": content,
                "source": source,
                "query": query,
                "entities": entities,
                "importance": legal_update_importance,
            },
        )

    async def update_relevance_scores(self, query: str) -> None:
        """Rescore chunks originating from or mentioning the query by age and tool mentions."""
        cypher = """
        MATCH (chunk:Chunk)
        WHERE chunk.queryOrigin = $query OR chunk.content CONTAINS $query
        SET chunk.relevanceScore = CASE
            WHEN chunk.createdAt > datetime() - duration('P30D') THEN 1.0
            WHEN chunk.createdAt > datetime() - duration('P90D') THEN 0.8
            WHEN chunk.createdAt > datetime() - duration('P180D') THEN 0.6
            ELSE 0.4
        END * CASE
            WHEN chunk.content CONTAINS 'Veo' OR chunk.content CONTAINS 'Canva'
                OR chunk.content CONTAINS 'Suno' THEN 1.2
            ELSE 1.0
        END
        """
        await self._run(cypher, {"query": query})

    async def recent_legal_updates(self, days: int = 7, limit: int = 10) -> list[dict[str, Any]]:
        """High and medium importance legal updates of the last ``days`` days."""
        cypher = """
        MATCH (update:LegalUpdate)<-[:IS_UPDATE]-(chunk:Chunk)
        WHERE update.date > datetime() - duration({days: $days})
        AND update.importance IN ['high', 'medium']
        RETURN update.topic AS topic,
               collect(DISTINCT chunk.title) AS titles,
               max(update.importance) AS maxImportance,
               count(chunk) AS updateCount
        ORDER BY updateCount DESC
        LIMIT $limit
        """
        return await self._run(cypher, {"days": days, "limit": limit})

    # =========================================================================
    # Document Ingestion
    # =========================================================================

    async def create_document(self, metadata: dict[str, Any]) -> str:
        """
        Create a Document, upsert its uploading Member and link them.

        Returns the element id of the new document.
        """
        cypher = """
        CREATE (d:Document {
            title: $title,
            author: $author,
            subject: $subject,
            keywords: $keywords,
            fileName: $fileName,
            originalFileName: $originalFileName,
            source: $fileName,
            pageCount: $pageCount,
            createdAt: datetime(),
            uploadedAt: datetime(),
            uploadedBy: $uploadedBy,
            organization: $organization,
            isDefault: false
        })
        MERGE (m:Member {email: $uploadedBy})
        ON CREATE SET
            m.organization = $organization,
            m.firstUploadAt = datetime(),
            m.lastUploadAt = datetime(),
            m.documentCount = 1
        ON MATCH SET
            m.documentCount = coalesce(m.documentCount, 0) + 1,
            m.lastUploadAt = datetime()
        CREATE (m)-[:UPLOADED {at: datetime()}]->(d)
        RETURN elementId(d) AS docId
        """
        rows = await self._run(cypher, metadata)
        return rows[0]["docId"]

    async def add_chunk(
        self,
        doc_id: str,
        *,
        content: str,
        page_number: int,
        chunk_index: int,
        start_index: int,
        end_index: int,
    ) -> None:
        cypher = """
        MATCH (d:Document) WHERE elementId(d) = $docId
        CREATE (c:Chunk {
            content: $content,
            pageNumber: $pageNumber,
            chunkIndex: $chunkIndex,
            startIndex: $startIndex,
            endIndex: $endIndex,
            createdAt: datetime()
        })
        CREATE (d)-[:CONTAINS {order: $chunkIndex}]->(c)
        """
        await self._run(
            cypher,
            {
                "docId": doc_id,
                "content": content,
                "pageNumber": page_number,
                "chunkIndex": chunk_index,
                "startIndex": start_index,
                "endIndex": end_index,
            },
        )

    async def link_extracted_entity(self, doc_id: str, term: str) -> None:
        cypher = """
        MATCH (d:Document) WHERE elementId(d) = $docId
        MERGE (e:Entity {name: $term, type: 'auto_extracted'})
        ON CREATE SET e.createdAt = datetime()
        MERGE (d)-[:MENTIONS]->(e)
        """
        await self._run(cypher, {"docId": doc_id, "term": term})

    async def mark_legal_document(self, doc_id: str) -> None:
        cypher = """
        MATCH (d:Document) WHERE elementId(d) = $docId
        SET d.hasLegalRiskContent = true
        SET d:LegalDocument
        """
        await self._run(cypher, {"docId": doc_id})

    async def recent_uploads(self, email: str, hours: int = 1) -> list[dict[str, Any]]:
        """Uploads by a member within the last ``hours`` hours."""
        cypher = """
        MATCH (d:Document {uploadedBy: $email})
        WHERE d.uploadedAt > datetime() - duration({hours: $hours})
        RETURN coalesce(d.originalFileName, d.fileName) AS fileName,
               d.uploadedBy AS uploadedBy,
               d.uploadedAt.epochMillis AS uploadedAtMs
        """
        return await self._run(cypher, {"email": email, "hours": hours})

    # =========================================================================
    # Document Management
    # =========================================================================

    async def delete_member_document(self, file_name: str, email: str) -> bool:
        """
        Delete a non-default document owned by ``email`` with its chunks.

        Returns False when no such document exists.
        """
        check = """
        MATCH (d:Document {fileName: $fileName, uploadedBy: $email})
        WHERE NOT coalesce(d.isDefault, false) = true
        RETURN count(d) AS cnt
        """
        rows = await self._run(check, {"fileName": file_name, "email": email})
        if not rows or not rows[0].get("cnt"):
            return False

        delete = """
        MATCH (d:Document {fileName: $fileName, uploadedBy: $email})
        WHERE NOT coalesce(d.isDefault, false) = true
        OPTIONAL MATCH (d)-[:CONTAINS]->(c:Chunk)
        DETACH DELETE c, d
        """
        await self._run(delete, {"fileName": file_name, "email": email})

        decrement = """
        MATCH (m:Member {email: $email})
        SET m.documentCount = CASE
            WHEN coalesce(m.documentCount, 0) > 0 THEN m.documentCount - 1
            ELSE 0
        END
        """
        await self._run(decrement, {"email": email})
        return True

    async def document_content(self, file_name: str) -> dict[str, Any] | None:
        cypher = """
        MATCH (d:Document {fileName: $fileName})
        OPTIONAL MATCH (d)-[:CONTAINS]->(c:Chunk)
        WITH d, c
        ORDER BY c.chunkIndex
        RETURN d.title AS title,
               d.fileName AS fileName,
               d.pageCount AS pageCount,
               collect({text: c.content, chunkIndex: c.chunkIndex, pageNumber: c.pageNumber}) AS chunks
        LIMIT 1
        """
        rows = await self._run(cypher, {"fileName": file_name})
        return rows[0] if rows else None

    async def set_default(self, file_name: str, is_default: bool) -> dict[str, Any] | None:
        cypher = """
        MATCH (d:Document)
        WHERE d.fileName = $fileName
        SET d.isDefault = $isDefault
        RETURN d.title AS title, d.fileName AS fileName,
               d.isDefault AS isDefault, d.uploadedBy AS uploadedBy
        """
        rows = await self._run(cypher, {"fileName": file_name, "isDefault": is_default})
        return rows[0] if rows else None

    async def default_documents(self) -> list[dict[str, Any]]:
        cypher = """
        MATCH (d:Document)
        WHERE d.isDefault = true
        OPTIONAL MATCH (d)-[:CONTAINS]->(c:Chunk)
        WITH d, count(c) AS chunkCount
        RETURN
            d.title AS title,
            d.fileName AS fileName,
            d.uploadedBy AS uploadedBy,
            d.uploadedAt AS uploadedAt,
            d.pageCount AS pageCount,
            d.isDefault AS isDefault,
            chunkCount
        ORDER BY d.uploadedAt DESC
        """
        return await self._run(cypher)

    # =========================================================================
    # Member Statistics
    # =========================================================================

    async def member_totals(self, email: str, organization: str) -> dict[str, Any] | None:
        cypher = """
        MATCH (d:Document)
        WHERE d.uploadedBy = $email AND d.organization = $organization
        OPTIONAL MATCH (d)-[:CONTAINS]->(c:Chunk)
        WITH d, count(c) AS chunkCount
        RETURN
            d.uploadedBy AS memberEmail,
            d.organization AS organization,
            count(DISTINCT d) AS documentCount,
            sum(d.pageCount) AS totalPages,
            sum(chunkCount) AS totalChunks,
            max(d.uploadedAt) AS lastUploadDate
        """
        rows = await self._run(cypher, {"email": email, "organization": organization})
        return rows[0] if rows else None

    async def member_recent_documents(
        self, email: str, organization: str, limit: int = 5
    ) -> list[dict[str, Any]]:
        cypher = """
        MATCH (d:Document)
        WHERE d.uploadedBy = $email AND d.organization = $organization
        OPTIONAL MATCH (d)-[:CONTAINS]->(c:Chunk)
        WITH d, count(c) AS chunkCount
        RETURN
            d.title AS title,
            d.fileName AS fileName,
            d.uploadedAt AS uploadedAt,
            d.pageCount AS pageCount,
            chunkCount
        ORDER BY d.uploadedAt DESC
        LIMIT $limit
        """
        return await self._run(
            cypher, {"email": email, "organization": organization, "limit": limit}
        )

    async def overall_totals(self, organization: str) -> dict[str, Any]:
        # Chunks and entities are counted per document before summing pages.
        cypher = """
        MATCH (d:Document)
        WHERE d.organization = $organization
        OPTIONAL MATCH (d)-[:CONTAINS]->(c:Chunk)
        WITH d, count(DISTINCT c) AS chunkCount
        OPTIONAL MATCH (d)-[:MENTIONS]->(e:Entity)
        WITH d, chunkCount, collect(DISTINCT e) AS entities
        WITH
            count(d) AS totalDocuments,
            count(DISTINCT d.uploadedBy) AS uniqueMembers,
            sum(chunkCount) AS totalChunks,
            sum(coalesce(d.pageCount, 0)) AS totalPages,
            collect(entities) AS entityLists
        RETURN
            totalDocuments,
            uniqueMembers,
            totalChunks,
            size(reduce(seen = [], es IN entityLists | seen + [x IN es WHERE NOT x IN seen])) AS totalEntities,
            totalPages
        """

        rows = await self._run(cypher, {"organization": organization})
        return rows[0] if rows else {}

    async def top_contributors(self, organization: str, limit: int = 10) -> list[dict[str, Any]]:
        cypher = """
        MATCH (d:Document)
        WHERE d.organization = $organization AND d.uploadedBy IS NOT NULL
        RETURN
            d.uploadedBy AS memberEmail,
            count(d) AS documentCount,
            sum(d.pageCount) AS totalPages
        ORDER BY documentCount DESC
        LIMIT $limit
        """
        return await self._run(cypher, {"organization": organization, "limit": limit})

    async def recent_organization_uploads(
        self, organization: str, limit: int = 10
    ) -> list[dict[str, Any]]:
        cypher = """
        MATCH (d:Document)
        WHERE d.organization = $organization
        RETURN
            d.title AS title,
            d.uploadedBy AS uploadedBy,
            d.uploadedAt AS uploadedAt,
            d.pageCount AS pageCount
        ORDER BY d.uploadedAt DESC
        LIMIT $limit
        """
        return await self._run(cypher, {"organization": organization, "limit": limit})


@lru_cache()
def get_graph_store() -> GraphStore:
    """Get cached graph store instance."""
    return GraphStore()
