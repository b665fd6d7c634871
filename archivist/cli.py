"""CLI for the Archivist engine."""

import argparse
import json
import logging
import sys

from . import __version__
from .exceptions import ArchivistError


def _open(args: argparse.Namespace):
    from .archivist import create_archivist
    
    return create_archivist(
        db_path=args.db,
        files_dir=args.files,
        embedding_provider=args.provider,
        embedding_model=args.model,
        vocab_path=args.vocab,
    )


def _print_document(document) -> None:
    line = f"{document.id}  [{document.status.value:<10}] {document.file_type.value:<7} {document.title}"
    if document.error_message:
        line += f"  ({document.error_message})"
    print(line)


def import_files(args: argparse.Namespace) -> None:
    """Import files and process them unless --no-process is given."""
    archivist = _open(args)
    try:
        documents = [
            archivist.import_file(path, title=args.title, file_type=args.type)
            for path in args.paths
        ]
        if not args.no_process:
            documents = archivist.process_many([d.id for d in documents])
        for document in documents:
            _print_document(document)
    finally:
        archivist.close()


def import_note(args: argparse.Namespace) -> None:
    """Import a typed-in note from the command line or stdin."""
    archivist = _open(args)
    try:
        text = args.text if args.text is not None else sys.stdin.read()
        document = archivist.import_text(args.title, text)
        _print_document(archivist.process(document.id))
    finally:
        archivist.close()


def process(args: argparse.Namespace) -> None:
    """Process the given documents, or every pending one."""
    archivist = _open(args)
    try:
        if args.ids:
            documents = archivist.process_many(args.ids)
        else:
            documents = archivist.process_pending()
        for document in documents:
            _print_document(document)
    finally:
        archivist.close()


def reprocess(args: argparse.Namespace) -> None:
    archivist = _open(args)
    try:
        for document_id in args.ids:
            _print_document(archivist.reprocess(document_id))
    finally:
        archivist.close()


def delete(args: argparse.Namespace) -> None:
    archivist = _open(args)
    try:
        for document_id in args.ids:
            if archivist.delete_document(document_id):
                print(f"Deleted {document_id}")
            else:
                print(f"Not found: {document_id}", file=sys.stderr)
    finally:
        archivist.close()


def list_documents(args: argparse.Namespace) -> None:
    archivist = _open(args)
    try:
        for document in archivist.list_documents(args.status):
            _print_document(document)
    finally:
        archivist.close()


def search(args: argparse.Namespace) -> None:
    """Run a hybrid search and print the ranked chunks."""
    archivist = _open(args)
    try:
        results = archivist.search(args.query, limit=args.limit, min_score=args.min_score)
        if not results:
            print("No results")
        for i, r in enumerate(results, 1):
            print(f"{i}. [{r.score:.3f}] {r.document_title} #{r.chunk_index}")
            print(f"   {r.content[:200]}...")
    finally:
        archivist.close()


def stats(args: argparse.Namespace) -> None:
    """Show engine statistics."""
    archivist = _open(args)
    try:
        print(json.dumps(archivist.get_stats(), indent=2))
    finally:
        archivist.close()


def serve(args: argparse.Namespace) -> None:
    """Start the REST API server."""
    import uvicorn
    from .api import create_app
    
    app = create_app(
        db_path=args.db,
        files_dir=args.files,
        embedding_provider=args.provider,
        embedding_model=args.model,
        vocab_path=args.vocab,
    )
    
    print(f"Starting Archivist API server on http://{args.host}:{args.port}")
    print(f"  Database: {args.db}")
    print(f"  Files: {args.files}")
    print(f"  Docs: http://{args.host}:{args.port}/docs\n")
    
    uvicorn.run(app, host=args.host, port=args.port)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="archivist",
        description="Archivist - document ingestion and hybrid search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  archivist import factura.pdf nomina.xlsx   Import and process files
  archivist note "Alarma" "Código 4521"      Save a typed-in note
  archivist search "cuánto pagué de luz"     Hybrid search
  archivist list --status error              Show failed documents
  archivist serve                            Start REST API server

Environment variables:
  ARCHIVIST_DB_PATH, ARCHIVIST_FILES_DIR, ARCHIVIST_VOCAB_PATH
  OPENAI_API_KEY    Required for OpenAI embeddings
  HF_TOKEN          Optional for HuggingFace models
"""
    )
    
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--db", type=str, default="archivist.db", help="Database path (default: archivist.db)"
    )
    parser.add_argument(
        "--files", type=str, default="archivist_files",
        help="Directory for imported files (default: archivist_files)"
    )
    parser.add_argument(
        "--provider", type=str, default="local", help="Embedding provider: local or openai"
    )
    parser.add_argument("--model", type=str, help="Embedding model name")
    parser.add_argument("--vocab", type=str, help="WordPiece vocabulary file (local provider)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    
    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    
    import_parser = subparsers.add_parser("import", help="Import files")
    import_parser.add_argument("paths", nargs="+", help="Files to import")
    import_parser.add_argument("--title", type=str, help="Title (default: file name)")
    import_parser.add_argument("--type", type=str, help="File type (default: from extension)")
    import_parser.add_argument(
        "--no-process", action="store_true", help="Only store the files, leave them pending"
    )
    import_parser.set_defaults(func=import_files)
    
    note_parser = subparsers.add_parser("note", help="Import a typed-in note")
    note_parser.add_argument("title", help="Note title")
    note_parser.add_argument("text", nargs="?", help="Note text (default: read stdin)")
    note_parser.set_defaults(func=import_note)
    
    process_parser = subparsers.add_parser("process", help="Process pending documents")
    process_parser.add_argument("ids", nargs="*", help="Document ids (default: all pending)")
    process_parser.set_defaults(func=process)
    
    reprocess_parser = subparsers.add_parser("reprocess", help="Reprocess documents")
    reprocess_parser.add_argument("ids", nargs="+", help="Document ids")
    reprocess_parser.set_defaults(func=reprocess)
    
    delete_parser = subparsers.add_parser("delete", help="Delete documents")
    delete_parser.add_argument("ids", nargs="+", help="Document ids")
    delete_parser.set_defaults(func=delete)
    
    list_parser = subparsers.add_parser("list", help="List documents")
    list_parser.add_argument(
        "--status", type=str, choices=["pending", "extracting", "chunking", "embedding", "ready", "error"],
        help="Only documents in this state",
    )
    list_parser.set_defaults(func=list_documents)
    
    search_parser = subparsers.add_parser("search", help="Hybrid search")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("-k", "--limit", type=int, default=5, help="Number of results")
    search_parser.add_argument("--min-score", type=float, help="Minimum fused score")
    search_parser.set_defaults(func=search)
    
    stats_parser = subparsers.add_parser("stats", help="Show engine statistics")
    stats_parser.set_defaults(func=stats)
    
    serve_parser = subparsers.add_parser("serve", help="Start REST API server")
    serve_parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Host to bind (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind (default: 8000)"
    )
    serve_parser.set_defaults(func=serve)
    
    args = parser.parse_args()
    
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    
    if args.command is None:
        parser.print_help()
        sys.exit(0)
    
    try:
        args.func(args)
    except ArchivistError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
