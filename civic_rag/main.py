"""Main entry point for the municipal query assistant."""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from civic_rag.config import get_settings
from civic_rag.errors import CollaboratorUnavailable
from civic_rag.llm import create_embedding_provider, create_generation_provider, create_llm_provider
from civic_rag.query import ContextAssembler, Discriminator, Orchestrator, ResponseCoordinator, Retriever
from civic_rag.session import SessionStore
from civic_rag.vector import ChromaVectorStore
from civic_rag.web_server import WebServer

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def build_coordinator() -> ResponseCoordinator:
    """Wire the pipeline from settings."""
    settings = get_settings()
    llm_provider = create_llm_provider()
    generation_provider = create_generation_provider()
    vector_store = ChromaVectorStore(create_embedding_provider())

    available = vector_store.list_collections()
    for name in (settings.business_collection, settings.document_collection):
        if name not in available:
            logger.warning(f"Collection '{name}' not found in ChromaDB; searches will return no results")

    return ResponseCoordinator(
        orchestrator=Orchestrator(llm_provider, settings),
        retriever=Retriever(vector_store, settings),
        discriminator=Discriminator(llm_provider),
        assembler=ContextAssembler(settings),
        generation_provider=generation_provider,
        sessions=SessionStore.from_settings(settings),
        settings=settings,
    )


async def main() -> None:
    """Main application entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting civic-rag in {settings.environment.value} mode")
    logger.info(f"Using LLM provider: {settings.llm_provider.value}")

    # Validate configuration
    try:
        settings.validate_provider_config()
        coordinator = build_coordinator()
    except (ValueError, CollaboratorUnavailable) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    coordinator.sessions.start_sweeper()
    web_server = WebServer(coordinator, port=settings.http_port)
    web_runner = await web_server.start()

    try:
        # Keep web server running
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down...")
        await coordinator.sessions.stop_sweeper()
        await web_server.stop(web_runner)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
