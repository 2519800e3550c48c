#!/usr/bin/env python3
"""
Embedding Builder
Embeds every catalog entry and writes the embedding file pair used at search time.

Usage:
    python -m isle_retrieval.scripts.build_embeddings data/places.json --output-dir data/embeddings

Requires OPENAI_API_KEY (or a compatible endpoint via RETRIEVAL_EMBEDDING_API_URL).
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from ..config import configure_logging, get_settings
from ..errors import CatalogError, ProviderError
from ..ml.embeddings import OpenAIEmbeddingProvider, build_embedding_text
from ..ml.retrieval.vector_store import write_embedding_files
from ..models import load_catalog

logger = logging.getLogger(__name__)


async def build(catalog_path: Path, output_dir: Path, batch_size: int, dry_run: bool) -> int:
    settings = get_settings()
    catalog = load_catalog(catalog_path)
    texts = [build_embedding_text(entry) for entry in catalog]
    ids = [entry.id for entry in catalog]

    logger.info(f"Prepared embedding text for {len(texts)} places")
    if dry_run:
        for entry_id, text in list(zip(ids, texts))[:5]:
            logger.info(f"  {entry_id}: {text[:120]}")
        logger.info("Dry run - no API calls, no files written")
        return 0

    if not settings.provider_configured:
        logger.error("OPENAI_API_KEY environment variable not set")
        return 1

    started = time.time()
    async with OpenAIEmbeddingProvider(settings) as provider:
        vectors = await provider.embed_batch(texts, batch_size=batch_size)

    index_path, vectors_path = write_embedding_files(
        vectors, ids, output_dir, model=settings.embedding_model
    )

    logger.info("=" * 60)
    logger.info("EMBEDDING BUILD COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Places embedded: {len(ids)}")
    logger.info(f"Dimension: {vectors.shape[1] if len(ids) else settings.embedding_dimension}")
    logger.info(f"Index file: {index_path}")
    logger.info(f"Vector file: {vectors_path}")
    logger.info(f"Processing time: {time.time() - started:.2f} seconds")
    return 0


def main(argv=None) -> int:
    """Main function to build the embedding files."""
    parser = argparse.ArgumentParser(description="Build embedding files for a place catalog")
    parser.add_argument("catalog_path", type=str, help="Path to the catalog JSON file")
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/embeddings",
        help="Directory for embedding-index.json and embeddings.bin (default: data/embeddings)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Texts per API request (default: RETRIEVAL_EMBEDDING_BATCH_SIZE or 100)",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Build embedding texts only, without API calls"
    )

    args = parser.parse_args(argv)
    configure_logging()

    catalog_path = Path(args.catalog_path)
    if not catalog_path.exists():
        logger.error(f"Catalog file not found: {catalog_path}")
        return 1

    try:
        return asyncio.run(build(catalog_path, Path(args.output_dir), args.batch_size, args.dry_run))
    except (CatalogError, ProviderError) as e:
        logger.error(f"Embedding build failed: {e.message}", extra={"details": e.details})
        return 1


if __name__ == "__main__":
    sys.exit(main())
