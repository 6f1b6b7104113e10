"""Command-line front end for building and querying document sets.

Usage::

    python -m docset_indexer.cli chunk --file notes.txt --chunk-size 256
    python -m docset_indexer.cli index --project "My Docs" --file a.txt --file b.txt --mock
    python -m docset_indexer.cli preview --project "My Docs" --file a.txt
    python -m docset_indexer.cli search --project "My Docs" --query "quarterly results" --mock
    python -m docset_indexer.cli delete --project "My Docs" --yes

Defaults come from ``config/config.yaml`` overlaid with environment
variables (see :mod:`docset_indexer.config.loader`).  No embedding clients
ship with the package, so ``index`` and ``search`` need ``--mock`` unless
the package is driven from code with an ``embed_fn``.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from docset_indexer.config.loader import load_config
from docset_indexer.models.embedding import Document, EmbeddingConfig
from docset_indexer.utils.errors import DocsetIndexerError
from docset_indexer.utils.logging import configure_logging


def _build_embedding_config(args: argparse.Namespace, config: dict) -> EmbeddingConfig:
    """Merge CLI flags over the resolved configuration dict."""
    storage = config["storage"]
    chunking = config["chunking"]
    embedding = config["embedding"]
    return EmbeddingConfig(
        project_name=args.project,
        model_name="mock" if args.mock else embedding["model"],
        model_provider="mock" if args.mock else embedding["provider"],
        vector_store_type=args.store or storage["vector_store_type"],
        storage_path=storage["storage_path"],
        sqlite_path=storage["sqlite_path"],
        chroma_host=storage["chroma_host"],
        chroma_port=storage["chroma_port"],
        chunk_size=args.chunk_size or chunking["chunk_size"],
        chunk_overlap=(
            args.chunk_overlap if args.chunk_overlap is not None else chunking["chunk_overlap"]
        ),
        max_expansion_tokens=chunking["max_expansion_tokens"],
        expansion_tokenizer_model=chunking["expansion_tokenizer_model"],
        include_metadata_in_chunk_size=chunking["include_metadata_in_chunk_size"],
        embed_batch_size=embedding["batch_size"],
        super_chunk_size=embedding["super_chunk_size"],
    )


def _build_service():  # noqa: ANN202
    """Deferred imports keep ``--help`` free of tiktoken / chromadb loading."""
    from docset_indexer.pipeline.progress_tracker import ProgressTracker
    from docset_indexer.services.embedding_service import EmbeddingService

    tracker = ProgressTracker()
    return EmbeddingService(tracker), tracker


def _read_documents(paths: list[str]) -> list[Document]:
    documents = []
    for raw in paths:
        path = Path(raw)
        documents.append(
            Document(
                id=path.stem,
                text=path.read_text(encoding="utf-8"),
                metadata={"source": path.name},
            )
        )
    return documents


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _handle_chunk(args: argparse.Namespace, config: dict) -> int:
    from docset_indexer.services.splitting import build_chunks

    chunking = config["chunking"]
    text = Path(args.file).read_text(encoding="utf-8")
    chunks = build_chunks(
        text,
        chunk_size=args.chunk_size or chunking["chunk_size"],
        chunk_overlap=(
            args.chunk_overlap if args.chunk_overlap is not None else chunking["chunk_overlap"]
        ),
    )
    for i, chunk in enumerate(chunks):
        print(f"--- chunk {i} ---")
        print(chunk)
    print(f"\n{len(chunks)} chunks")
    return 0


async def _handle_index(args: argparse.Namespace, config: dict) -> int:
    service, tracker = _build_service()
    embedding_config = _build_embedding_config(args, config)

    def _print_progress(operation_id: str, progress: float, total: float) -> None:
        print(f"\r  {operation_id}: {progress:.0f}/{total:.0f}", end="", flush=True)

    tracker.register_listener(_print_progress)
    print(f"Indexing {len(args.file)} file(s) into {args.project!r}")
    result = await service.create_embeddings(_read_documents(args.file), embedding_config)
    print()
    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    print(f"Done: {result.node_count} nodes stored ({embedding_config.vector_store_type})")
    return 0


def _handle_preview(args: argparse.Namespace, config: dict) -> int:
    service, _ = _build_service()
    embedding_config = _build_embedding_config(args, config)
    preview = service.preview_results(_read_documents(args.file), embedding_config)
    if not preview.success:
        print(f"Error: {preview.error}", file=sys.stderr)
        return 1
    for node in preview.nodes:
        marker = " (expanded)" if node.is_expanded else ""
        print(f"- {node.text[:120]!r}{marker}")
    if preview.cost is not None:
        print(
            f"\n{preview.cost.token_count} tokens, "
            f"~${preview.cost.estimated_price:.4f} with {preview.cost.model_name}"
        )
    return 0


async def _handle_search(args: argparse.Namespace, config: dict) -> int:
    service, _ = _build_service()
    embedding_config = _build_embedding_config(args, config)
    index = service.get_existing_index(embedding_config)
    results = await service.search(index, args.query, num_results=args.top_k)
    if not results:
        print("No results.")
        return 0
    for rank, hit in enumerate(results, start=1):
        print(f"{rank:>2}. [{hit.score:.3f}] ({hit.source_node_id}) {hit.text[:160]!r}")
    return 0


async def _handle_delete(args: argparse.Namespace, config: dict) -> int:
    if not args.yes:
        print("Refusing to delete without --yes", file=sys.stderr)
        return 1
    service, _ = _build_service()
    await service.delete_document_set(_build_embedding_config(args, config))
    print(f"Deleted document set {args.project!r}")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--project", required=True, help="Document set name")
    parser.add_argument("--store", choices=["simple", "sqlite", "chroma"], help="Storage backend")
    parser.add_argument("--mock", action="store_true", help="Use constant mock embeddings")
    parser.add_argument("--chunk-size", type=int, help="Tokens per chunk")
    parser.add_argument("--chunk-overlap", type=int, help="Overlap tokens between chunks")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docset_indexer",
        description="Split, embed and search document sets.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config path")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    chunk_parser = subparsers.add_parser("chunk", help="Print the chunks of a text file")
    chunk_parser.add_argument("--file", required=True, help="Text file to split")
    chunk_parser.add_argument("--chunk-size", type=int, help="Tokens per chunk")
    chunk_parser.add_argument("--chunk-overlap", type=int, help="Overlap tokens between chunks")

    index_parser = subparsers.add_parser("index", help="Embed and store text files")
    _add_common(index_parser)
    index_parser.add_argument(
        "--file", action="append", required=True, help="Text file (repeatable)"
    )

    preview_parser = subparsers.add_parser("preview", help="Show sample nodes and cost")
    _add_common(preview_parser)
    preview_parser.add_argument(
        "--file", action="append", required=True, help="Text file (repeatable)"
    )

    search_parser = subparsers.add_parser("search", help="Query a stored document set")
    _add_common(search_parser)
    search_parser.add_argument("--query", required=True, help="Search text")
    search_parser.add_argument("--top-k", type=int, default=10, help="Number of results")

    delete_parser = subparsers.add_parser("delete", help="Delete a stored document set")
    _add_common(delete_parser)
    delete_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits with the handler's return code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = load_config(args.config)
    configure_logging(
        log_level=args.log_level or config["logging"]["level"],
        json_output=config["app"]["env"] == "production",
    )

    try:
        if args.command == "chunk":
            exit_code = _handle_chunk(args, config)
        elif args.command == "index":
            exit_code = asyncio.run(_handle_index(args, config))
        elif args.command == "preview":
            exit_code = _handle_preview(args, config)
        elif args.command == "search":
            exit_code = asyncio.run(_handle_search(args, config))
        elif args.command == "delete":
            exit_code = asyncio.run(_handle_delete(args, config))
        else:
            parser.print_help()
            exit_code = 1
    except DocsetIndexerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 2

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
