"""Standalone CLI for ingesting documents and asking questions.

Usage::

    python -m mindmesh.cli ingest --owner alice notes.md report.pdf
    python -m mindmesh.cli ask --owner alice "What did the report conclude?"
    python -m mindmesh.cli ask --owner alice --session <id> --limit 8 "And why?"
    python -m mindmesh.cli list --owner alice

Configuration comes from ``.env``, ``config/config.yaml`` and the
environment, exactly as for the web app.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import Any

from mindmesh.config.loader import load_settings
from mindmesh.utils.errors import MindMeshError


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["ingestion_service"]
    exit_code = 0
    for raw_path in args.files:
        path = Path(raw_path)
        if not path.is_file():
            print(f"Error: {path} is not a file", file=sys.stderr)
            exit_code = 1
            continue

        content_type, _encoding = mimetypes.guess_type(path.name)
        print(f"Ingesting: {path}")
        try:
            result = await service.ingest(
                owner_id=args.owner,
                filename=path.name,
                data=path.read_bytes(),
                content_type=content_type,
            )
        except MindMeshError as exc:
            print(f"  Failed: {exc}", file=sys.stderr)
            exit_code = 1
            continue

        document = result.document
        print(f"  Document ID:    {document.id}")
        print(f"  Status:         {document.status.value}")
        print(f"  Duplicate:      {'yes' if result.is_duplicate else 'no'}")
        if not result.is_duplicate:
            print(f"  Chunks created: {result.chunks_created}")
            print(f"  Total tokens:   {result.total_tokens}")
            print(f"  Time:           {result.ingestion_time:.2f}s")
    return exit_code


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["chat_service"].chat(
        owner_id=args.owner,
        message=args.question,
        session_id=args.session,
        limit=args.limit,
    )
    print(result.answer)
    print()
    print(f"Session: {result.session_id}")
    if result.cited_chunks:
        print("Cited chunks:")
        for cited in result.cited_chunks:
            print(f"  {cited.id}  (document {cited.document_id}, chunk {cited.chunk_index})")
    return 0


async def _handle_list(args: argparse.Namespace, components: dict[str, Any]) -> int:
    documents = await components["ingestion_service"].list_documents(args.owner)
    if not documents:
        print(f"No documents for owner '{args.owner}'.")
        return 0
    for document in documents:
        print(
            f"{document.id}  {document.status.value:<10}  "
            f"{document.created_at:%Y-%m-%d %H:%M}  {document.filename}"
        )
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "ask": _handle_ask,
    "list": _handle_list,
}


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the MindMesh CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m mindmesh.cli",
        description="Ingest documents and ask questions about them.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config path")
    subparsers = parser.add_subparsers(dest="command")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest one or more files")
    ingest_parser.add_argument("--owner", required=True, help="Owner ID")
    ingest_parser.add_argument("files", nargs="+", help="Files to ingest")

    ask_parser = subparsers.add_parser("ask", help="Ask a question about your documents")
    ask_parser.add_argument("--owner", required=True, help="Owner ID")
    ask_parser.add_argument("--session", default=None, help="Continue an existing session")
    ask_parser.add_argument("--limit", type=int, default=None, help="Max chunks to use")
    ask_parser.add_argument("question", help="The question to ask")

    list_parser = subparsers.add_parser("list", help="List documents")
    list_parser.add_argument("--owner", required=True, help="Owner ID")

    return parser


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    await components["store"].initialize()
    try:
        return await _HANDLERS[args.command](args, components)
    except MindMeshError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    # Deferred so that --help does not configure providers.
    from mindmesh.main import build_components

    app_settings = load_settings(args.config)
    components = build_components(app_settings)
    return asyncio.run(_run(args, components))


if __name__ == "__main__":
    sys.exit(main())
