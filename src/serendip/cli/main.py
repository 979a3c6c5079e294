"""Command line interface for serendip."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

from serendip.api.schemas import ConnectionModel, DeepConnectionModel
from serendip.config import Settings, get_settings
from serendip.discovery.classifier import NoteNotFoundError
from serendip.discovery.filters import FolderFilter
from serendip.metrics.observability import get_logger
from serendip.services.analogy import fallback_analogy
from serendip.services.bootstrap import ServiceBundle, build_chroma_store, build_embedder, build_services
from serendip.vault.notes import generate_note_id

LOGGER = get_logger("cli")


class CommandError(RuntimeError):
    """A command could not run with the current configuration."""


def resolve_note_id(note: str, services: ServiceBundle) -> str:
    """Accept either a note id or a vault-relative note path."""

    if services.classifier.get_path(note) is not None:
        return note
    return generate_note_id(note)


def run_discover(services: ServiceBundle, note: str, *, explain: bool = False) -> Dict[str, Any]:
    note_id = resolve_note_id(note, services)
    connections = services.engine.discover(note_id)
    if explain:
        for connection in connections:
            if services.analogy is not None:
                services.analogy.attach(connection)
            else:
                connection.attach_explanation(fallback_analogy(connection))
    return {
        "source_id": note_id,
        "connections": [ConnectionModel.from_connection(conn).model_dump(mode="json") for conn in connections],
    }


def run_top(services: ServiceBundle, *, limit: int) -> Dict[str, Any]:
    connections = services.engine.find_top_serendipitous_connections(limit=limit)
    services.cache.save_standard(connections)
    return {
        "connections": [ConnectionModel.from_connection(conn).model_dump(mode="json") for conn in connections],
        "cache_path": str(services.cache.path),
    }


def run_deep(services: ServiceBundle) -> Dict[str, Any]:
    if services.deep_engine is None:
        raise CommandError("Deep discovery requires SERENDIP_USE_MODEL_EVALUATOR=true")
    connections = services.deep_engine.discover()
    services.cache.save_deep(connections)
    return {
        "connections": [DeepConnectionModel.from_connection(conn).model_dump(mode="json") for conn in connections],
        "cache_path": str(services.cache.path),
    }


def run_embed(settings: Settings, services: ServiceBundle) -> Dict[str, Any]:
    folder_filter = FolderFilter(settings.include_folders_tuple, settings.exclude_folders_tuple)
    paths = [path for path in services.vault.list_note_paths() if folder_filter.allows(path)]
    embedded = build_embedder(settings).embed_vault(services.vault, paths)
    store = build_chroma_store(settings)
    store.upsert([record for _, record in embedded], paths={record.note_id: path for path, record in embedded})
    return {"embedded": len(embedded), "collection": settings.chroma_collection, "total": store.count()}


def run_refresh(services: ServiceBundle) -> Dict[str, Any]:
    services.classifier.refresh_index()
    return {"indexed_notes": services.classifier.note_count, "embedded_notes": services.store.count()}


def _format_markdown(command: str, result: Dict[str, Any]) -> str:
    lines = [f"# Serendip report: {command}", ""]
    connections = result.get("connections")
    if connections is None:
        for key, value in result.items():
            lines.append(f"- {key}: {value}")
        return "\n".join(lines)
    if not connections:
        lines.append("No connections found.")
        return "\n".join(lines)
    if command == "deep":
        lines.extend(["| Source | Target | Quality | Analogy |", "| --- | --- | --- | --- |"])
        for item in connections:
            lines.append(
                f"| {item['source']['title']} ({item['source']['primary_domain']}) "
                f"| {item['target']['title']} ({item['target']['primary_domain']}) "
                f"| {item['quality_score']:.2f} | {item['explanation'] or '-'} |",
            )
        return "\n".join(lines)
    lines.extend(["| Source | Target | Score | Type | Explanation |", "| --- | --- | --- | --- | --- |"])
    for item in connections:
        lines.append(
            f"| {item['source']['title']} ({item['source']['primary_domain']}) "
            f"| {item['target']['title']} ({item['target']['primary_domain']}) "
            f"| {item['serendipity_score'] * 100:.0f}% | {item['connection_type_label']} "
            f"| {item['explanation'] or '-'} |",
        )
    return "\n".join(lines)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discover serendipitous cross-domain connections between notes.")
    parser.add_argument("--vault", type=Path, default=None, help="Override the vault directory")
    parser.add_argument("--markdown-out", type=Path, default=None, help="Optional path to write a Markdown report")
    subparsers = parser.add_subparsers(dest="command", required=True)

    discover = subparsers.add_parser("discover", help="Connections for one note")
    discover.add_argument("note", help="Note id or vault-relative path")
    discover.add_argument("--explain", action="store_true", help="Attach an analogy to each connection")

    top = subparsers.add_parser("top", help="Best connections across a sample of the vault")
    top.add_argument("--limit", type=int, default=10, help="Maximum number of connections")

    subparsers.add_parser("deep", help="LLM-first discovery across domains")
    subparsers.add_parser("embed", help="Embed vault notes into the Chroma collection")
    subparsers.add_parser("refresh", help="Rebuild the note index and report counts")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = settings or get_settings()
    if args.vault is not None:
        settings = settings.model_copy(update={"vault_dir": args.vault})
    services = build_services(settings)

    try:
        if args.command == "discover":
            result = run_discover(services, args.note, explain=args.explain)
        elif args.command == "top":
            result = run_top(services, limit=args.limit)
        elif args.command == "deep":
            result = run_deep(services)
        elif args.command == "embed":
            result = run_embed(settings, services)
        else:
            result = run_refresh(services)
    except (CommandError, NoteNotFoundError) as exc:
        LOGGER.error("cli.command_failed", command=args.command, detail=str(exc))
        print(str(exc), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    if args.markdown_out:
        args.markdown_out.write_text(_format_markdown(args.command, result), encoding="utf-8")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
