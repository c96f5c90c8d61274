"""docvec command-line interface.

Usage::

    python -m docvec.cli ingest notes.md report.pdf --collection documents
    python -m docvec.cli ingest --dir ./corpus --chunk-size 200 --overlap 40
    python -m docvec.cli query "how are chunks sized?" --collection documents --top-k 5
    python -m docvec.cli collections create papers --dimension 384 --metric cosine
    python -m docvec.cli collections list
    python -m docvec.cli documents show <document-id>

Configuration comes from the environment, ``.env`` and
``config/config.yaml`` exactly as for the library.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from docvec.config.settings import Settings
from docvec.main import Components, bootstrap
from docvec.models.document import (
    DocumentStatus,
    DocumentType,
    IngestionRequest,
    ProcessingOptions,
)
from docvec.utils.errors import DocVecError, UnsupportedTypeError
from docvec.utils.logging import configure_logging

_PREVIEW_CHARS = 160


def _collect_files(files: list[str], directory: str | None) -> list[Path]:
    """Explicit files first, then every supported file under *directory*."""
    paths = [Path(f) for f in files]
    if directory:
        for path in sorted(Path(directory).rglob("*")):
            if not path.is_file():
                continue
            try:
                DocumentType.from_filename(path.name)
            except UnsupportedTypeError:
                continue
            paths.append(path)
    return paths


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= _PREVIEW_CHARS else flat[: _PREVIEW_CHARS - 3] + "..."


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: Components) -> int:
    """Queue every file, wait for the workers and report per-document status."""
    paths = _collect_files(args.files, args.dir)
    if not paths:
        print("No files to ingest.")
        return 1

    collection = components.vector_store.resolve(args.collection)
    options = ProcessingOptions(
        chunk_size=args.chunk_size or components.settings.default_chunk_size,
        chunk_overlap=args.overlap if args.overlap is not None else components.settings.default_chunk_overlap,
        preserve_formatting=args.preserve_formatting,
        truncate_embeddings=args.truncate,
    )
    print(f"Ingesting {len(paths)} file(s) into {collection.name} ({collection.id})")

    coordinator = components.coordinator
    requests = [
        IngestionRequest(
            file_path=str(path),
            file_name=path.name,
            file_type=args.type,
            collection_id=collection.id,
            options=options,
            embedding_model=args.model,
        )
        for path in paths
    ]
    async with coordinator:
        for request in requests:
            await coordinator.submit(request)
        await coordinator.join()

    failures = 0
    for request in requests:
        document = coordinator.get_result(request.id)
        if document is None:
            continue
        print(
            f"  {document.status.value:<9} {document.file_name:<40} "
            f"chunks={len(document.chunks):<4} vectors={document.vector_count}"
        )
        for error in document.errors:
            print(f"            {error}")
        if document.status == DocumentStatus.FAILED:
            failures += 1

    print(f"\nDone: {len(requests) - failures} ingested, {failures} failed")
    return 1 if failures else 0


async def _handle_query(args: argparse.Namespace, components: Components) -> int:
    collection = components.vector_store.resolve(args.collection)
    metadata_filter = json.loads(args.filter) if args.filter else None
    response = await components.query_service.search(
        collection.id,
        text=args.text,
        top_k=args.top_k,
        metadata_filter=metadata_filter,
        namespace=args.namespace,
        model=args.model,
        truncate=args.truncate,
    )

    info = response.embedding_info
    if info is not None:
        fallback = " (fallback)" if info.used_fallback else ""
        print(f"Model: {info.model}{fallback} | ~{info.token_estimate} tokens | {info.latency_ms:.1f} ms")
    if not response.results:
        print("No results.")
        return 0
    for rank, result in enumerate(response.results, start=1):
        source = result.metadata.get("file_name", "")
        print(f"{rank:>3}. {result.score:+.4f}  {result.id}  {source}")
        text = result.metadata.get("text")
        if text:
            print(f"      {_preview(str(text))}")
    return 0


async def _handle_collections(args: argparse.Namespace, components: Components) -> int:
    store = components.vector_store

    if args.action == "create":
        dimension = args.dimension or components.embedding_generator.dimension(args.model)
        collection = await store.create_collection(args.name, dimension, args.metric)
        print(f"Created {collection.name} ({collection.id}): dim={collection.dimension} metric={collection.metric.value}")
        return 0

    if args.action == "list":
        collections = store.list_collections()
        if not collections:
            print("No collections.")
            return 0
        print(f"{'NAME':<24} {'ID':<38} {'DIM':>6} {'METRIC':<12} {'VECTORS':>8}")
        for collection in collections:
            print(
                f"{collection.name:<24} {collection.id:<38} {collection.dimension:>6} "
                f"{collection.metric.value:<12} {collection.vector_count:>8}"
            )
        return 0

    collection = store.resolve(args.name)
    if args.action == "stats":
        stats = await store.stats(collection.id)
        print(f"Collection Statistics: {stats.name}")
        print("=" * 40)
        print(f"  Id:               {stats.collection_id}")
        print(f"  Vectors:          {stats.count}")
        print(f"  Dimension:        {stats.dimension}")
        print(f"  Metric:           {stats.metric.value}")
        print(f"  Estimated memory: {stats.estimated_memory} bytes")
        return 0

    if args.action == "delete":
        if not args.yes:
            confirm = input(f"  Delete {collection.name} and its {collection.vector_count} vectors? [y/N] ")
            if confirm.strip().lower() not in ("y", "yes"):
                print("  Aborted.")
                return 0
        await store.delete_collection(collection.id)
        print(f"Deleted {collection.name}")
        return 0

    await store.reindex(collection.id)
    print(f"Reindexed {collection.name}")
    return 0


async def _handle_documents(args: argparse.Namespace, components: Components) -> int:
    repository = components.repository

    if args.action == "list":
        status = DocumentStatus(args.status) if args.status else None
        documents = await repository.list_documents(status=status, limit=args.limit)
        if not documents:
            print("No documents.")
            return 0
        for document in documents:
            print(
                f"{document.id}  {document.status.value:<9} {document.file_name:<40} "
                f"{document.created_at:%Y-%m-%d %H:%M}"
            )
        return 0

    document = await repository.get_document(args.document_id)
    if document is None:
        print(f"Document not found: {args.document_id}", file=sys.stderr)
        return 1
    print(f"{document.title} ({document.id})")
    print("=" * 40)
    print(f"  File:       {document.file_path}")
    print(f"  Type:       {document.document_type.value if document.document_type else '-'}")
    print(f"  Status:     {document.status.value}")
    print(f"  Collection: {document.collection_id or '-'}")
    print(f"  Chunks:     {len(document.chunks)}")
    print(f"  Vectors:    {document.vector_count}")
    print(f"  Time:       {document.processing_time_ms:.1f} ms")
    if document.metadata is not None:
        print(f"  Language:   {document.metadata.language}")
        print(f"  Words:      {document.metadata.word_count}")
        if document.metadata.tags:
            print(f"  Tags:       {', '.join(document.metadata.tags)}")
    if document.statistics is not None:
        print(f"  Readability: {document.statistics.readability_score:.1f}")
        print(f"  Complexity:  {document.statistics.complexity_score:.1f}")
    for error in document.errors:
        print(f"  Error: {error}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "query": _handle_query,
    "collections": _handle_collections,
    "documents": _handle_documents,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m docvec.cli",
        description="Ingest documents into vector collections and search them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest one or more files")
    ingest_parser.add_argument("files", nargs="*", help="Files to ingest")
    ingest_parser.add_argument("--dir", help="Also ingest every supported file under this directory")
    ingest_parser.add_argument("--type", help="Declared document type (default: from the file extension)")
    ingest_parser.add_argument("--collection", default="documents", help="Collection id or name")
    ingest_parser.add_argument("--chunk-size", type=int, dest="chunk_size", help="Words per chunk")
    ingest_parser.add_argument("--overlap", type=int, help="Words shared by consecutive chunks")
    ingest_parser.add_argument("--model", help="Embedding model (default: EMBEDDING_MODEL)")
    ingest_parser.add_argument(
        "--preserve-formatting",
        action="store_true",
        dest="preserve_formatting",
        help="Keep extracted whitespace as-is",
    )
    ingest_parser.add_argument(
        "--truncate",
        action="store_true",
        help="Truncate over-long chunks instead of skipping them",
    )

    # -- query --
    query_parser = subparsers.add_parser("query", help="Search a collection with text")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument("--collection", default="documents", help="Collection id or name")
    query_parser.add_argument("--top-k", type=int, default=5, dest="top_k", help="Maximum results")
    query_parser.add_argument("--filter", help='Metadata filter as JSON, e.g. \'{"document_type": "pdf"}\'')
    query_parser.add_argument("--namespace", help="Restrict to one namespace")
    query_parser.add_argument("--model", help="Embedding model (default: EMBEDDING_MODEL)")
    query_parser.add_argument(
        "--truncate",
        action="store_true",
        help="Cut an over-long query to the model limit instead of failing",
    )

    # -- collections --
    collections_parser = subparsers.add_parser("collections", help="Manage collections")
    collection_actions = collections_parser.add_subparsers(dest="action", required=True)
    create_parser = collection_actions.add_parser("create", help="Create a collection")
    create_parser.add_argument("name", help="Collection name")
    create_parser.add_argument("--dimension", type=int, help="Vector dimension (default: the model's)")
    create_parser.add_argument("--model", help="Model whose dimension to use when --dimension is omitted")
    create_parser.add_argument(
        "--metric",
        default="cosine",
        choices=["cosine", "euclidean", "dot_product", "manhattan"],
        help="Similarity metric (default: cosine)",
    )
    collection_actions.add_parser("list", help="List collections")
    for action in ("stats", "reindex"):
        sub = collection_actions.add_parser(action, help=f"{action.capitalize()} a collection")
        sub.add_argument("name", help="Collection id or name")
    delete_parser = collection_actions.add_parser("delete", help="Delete a collection and its vectors")
    delete_parser.add_argument("name", help="Collection id or name")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    # -- documents --
    documents_parser = subparsers.add_parser("documents", help="Inspect ingested documents")
    document_actions = documents_parser.add_subparsers(dest="action", required=True)
    list_parser = document_actions.add_parser("list", help="List documents, newest first")
    list_parser.add_argument("--status", choices=[s.value for s in DocumentStatus], help="Only this status")
    list_parser.add_argument("--limit", type=int, default=50, help="Maximum rows (default: 50)")
    show_parser = document_actions.add_parser("show", help="Show one document")
    show_parser.add_argument("document_id", help="Document id")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    components = await bootstrap(app_settings)
    try:
        return await _HANDLERS[args.command](args, components)
    finally:
        await components.close()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point; exits 1 on any docvec error."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, json_output=(app_settings.app_env == "production"))

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except DocVecError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as exc:
        print(f"Error: invalid --filter JSON: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)
