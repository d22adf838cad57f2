"""
Command-line interface for legal-graphrag.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import structlog

from legal_graphrag.config import get_settings
from legal_graphrag.log_config import configure_logging

logger = structlog.get_logger(__name__)


def _read_json(path: str) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _write_or_echo(payload, output: Optional[str]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        click.echo(f"\nResults written to: {output}")
    else:
        click.echo(text)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """legal-graphrag: AI legal risk diagnosis and document generation."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    configure_logging(settings)


# =========================================================================
# Server Commands
# =========================================================================


@cli.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    click.echo(f"Starting Legal GraphRAG API server on {host}:{port}")

    uvicorn.run(
        "legal_graphrag.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


# =========================================================================
# Pipeline Commands
# =========================================================================


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(), help="Output file for the diagnosis")
def diagnose(input_path: str, output: Optional[str]) -> None:
    """Diagnose the legal risks described in a DiagnosisInput JSON file."""
    from legal_graphrag.models.diagnosis import DiagnosisInput
    from legal_graphrag.services.diagnosis import get_diagnosis_service

    data = DiagnosisInput.model_validate(_read_json(input_path))
    if not data.app_description:
        raise click.UsageError("appDescription is required")

    async def run_diagnosis():
        service = get_diagnosis_service()
        try:
            return await service.diagnose(data)
        finally:
            await service.graph_search.store.close()

    outcome = asyncio.run(run_diagnosis())
    result = outcome.value

    click.echo(f"\nSource: {outcome.source.value}" + (f" ({outcome.reason})" if outcome.reason else ""))
    click.echo(f"Overall risk: {result.overall_risk_level.value}")
    click.echo(f"Risks: {len(result.risks)}")
    for risk in result.risks:
        click.echo(f"  [{risk.level.value}] {risk.category}")

    _write_or_echo(result.to_json_dict(), output)


@cli.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False),
    help="Directory to write one Markdown file per document",
)
def generate(input_path: str, output_dir: Optional[str]) -> None:
    """Generate legal documents from a DocumentGeneratorInput JSON file."""
    from legal_graphrag.models.document import DocumentGeneratorInput
    from legal_graphrag.services.document_generator import get_document_generator

    data = DocumentGeneratorInput.model_validate(_read_json(input_path))
    if not data.document_types:
        raise click.UsageError("documentTypes must not be empty")
    if not data.company_name:
        raise click.UsageError("companyName is required")

    outcomes = asyncio.run(get_document_generator().generate_all(data))

    for outcome in outcomes:
        doc = outcome.value
        click.echo(f"{doc.title}: {outcome.source.value} ({len(doc.content)} chars)")
        if output_dir:
            path = Path(output_dir)
            path.mkdir(parents=True, exist_ok=True)
            (path / f"{doc.type.value}.md").write_text(doc.content, encoding="utf-8")

    if output_dir:
        click.echo(f"\nDocuments written to: {output_dir}")


@cli.command()
def learn() -> None:
    """Run auto-learn against government sites."""
    from legal_graphrag.services.learning import SerpApiNotConfigured, get_learning_service

    async def run_learn():
        service = get_learning_service()
        try:
            return await service.auto_learn()
        finally:
            await service.store.close()

    try:
        result = asyncio.run(run_learn())
    except SerpApiNotConfigured:
        click.echo("Error: SERPAPI_KEY is not configured", err=True)
        raise SystemExit(1)

    click.echo(result["message"])


# =========================================================================
# Database Commands
# =========================================================================


@cli.command()
def init_db() -> None:
    """Create graph constraints and indexes."""
    from legal_graphrag.storage.neo4j_adapter import get_graph_store

    async def setup():
        store = get_graph_store()
        try:
            await store.setup_schema()
        finally:
            await store.close()

    click.echo("Initializing graph schema...")
    asyncio.run(setup())
    click.echo("Done.")


@cli.command()
def health() -> None:
    """Check service health."""
    from legal_graphrag.services.llm_service import get_llm_service
    from legal_graphrag.storage.neo4j_adapter import get_graph_store

    click.echo("\n=== Service Health Check ===\n")

    # LLM
    llm_status = get_llm_service().health_check()
    click.echo("LLM Services:")
    for provider, status in llm_status.items():
        status_str = "✓" if status else "✗"
        click.echo(f"  {provider}: {status_str}")

    # Neo4j
    async def check_graph():
        store = get_graph_store()
        try:
            return await store.health_check()
        finally:
            await store.close()

    status_str = "✓" if asyncio.run(check_graph()) else "✗"
    click.echo(f"\nNeo4j: {status_str}")

    # Settings
    settings = get_settings()
    click.echo(f"\nEnvironment: {settings.environment}")
    click.echo(f"Debug: {settings.debug}")


# =========================================================================
# Config Commands
# =========================================================================


@cli.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    click.echo("\n=== Legal GraphRAG Configuration ===\n")
    click.echo(f"Environment: {settings.environment}")
    click.echo(f"Debug: {settings.debug}")
    click.echo(f"Organization: {settings.organization}")
    click.echo(f"\nPrimary LLM: anthropic ({settings.model_name})")
    click.echo(f"Fallback LLM: openai ({settings.fallback_llm_model})")
    click.echo(f"Anthropic configured: {settings.anthropic_configured}")
    click.echo(f"\nNeo4j: {settings.neo4j_uri}")
    click.echo(f"Web search: {'tavily' if settings.tavily_api_key else 'sample data'}")
    click.echo(f"Rate limit backend: {settings.rate_limit_backend}")
    click.echo(f"Max upload size: {settings.max_upload_size_mb}MB")
    click.echo(f"Generation batch size: {settings.generation_batch_size}")


def main() -> None:
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
