"""
Command-line interface for notegraph.

Usage:
    notegraph init [PATH]            Create a vault and write the config
    notegraph status                 Show document and graph counts
    notegraph add [-m TEXT]          Add a manual entry
    notegraph edit ID                Edit a manual entry
    notegraph scan                   Sync vault files into the index
    notegraph process                Extract entities and relationships
    notegraph entity NAME_OR_ID      Show an entity and its neighbourhood
    notegraph search QUERY           Search entities and documents
    notegraph ask QUESTION           Answer a question from the graph
    notegraph today [DATE]           Show the documents for a date
    notegraph rebuild                Delete the graph and reprocess everything
"""

import re
from datetime import date as date_cls
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click
from pydantic import ValidationError

from notegraph import __version__
from notegraph.audit import close_logger, get_logger, init_audit_logger
from notegraph.core.config import (
    USER_CONFIG_PATH,
    NotegraphConfig,
    load_config,
    write_config,
)
from notegraph.core.db import GraphDatabase, new_id
from notegraph.core.documents import Document, DocumentStatus, DocumentStore
from notegraph.core.entities import Entity, EntityStore
from notegraph.core.relationships import RelationshipStore
from notegraph.llm.ask import Retriever
from notegraph.llm.client import LLMClient, LLMError
from notegraph.pipeline.processor import ExtractionOrchestrator, ProcessResult
from notegraph.scanner.sync import VaultSynchronizer


RECENT_ERRORS = 3


def _load_config_or_exit(
    config_path: Optional[Path], overrides: Optional[dict] = None
) -> NotegraphConfig:
    """Load config with user-friendly Pydantic validation errors."""
    try:
        return load_config(config_path, cli_overrides=overrides)
    except ValidationError as e:
        click.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = " -> ".join(str(x) for x in error["loc"])
            click.echo(f"  {loc}: {error['msg']}", err=True)
        raise SystemExit(1)


def _config(ctx: click.Context) -> NotegraphConfig:
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        overrides = {"vault": {"path": obj["vault"]}} if obj.get("vault") else None
        obj["config"] = _load_config_or_exit(obj.get("config_path"), overrides)
    return obj["config"]


def _open_vault(ctx: click.Context) -> Tuple[NotegraphConfig, GraphDatabase]:
    """Load config, open the vault database and start the audit log.

    Both are closed when the command finishes.
    """
    cfg = _config(ctx)
    vault = cfg.vault.path
    if not vault.is_dir():
        raise click.ClickException(
            f"Vault not found: {vault}. Run `notegraph init {vault}` first."
        )

    db = GraphDatabase(cfg.vault.db_path)
    init_audit_logger(cfg.vault.log_dir, session_id=new_id())
    ctx.call_on_close(db.close)
    ctx.call_on_close(close_logger)
    return cfg, db


def _llm_client(ctx: click.Context, cfg: NotegraphConfig) -> LLMClient:
    obj = ctx.ensure_object(dict)
    if obj.get("llm_client") is None:
        obj["llm_client"] = LLMClient(cfg.llm)
    return obj["llm_client"]


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False, path_type=Path), help="Config file path")
@click.option("--vault", "-v", "vault", type=click.Path(file_okay=False), help="Vault directory (overrides config)")
@click.pass_context
def cli(ctx, config_path: Optional[Path], vault: Optional[str]):
    """notegraph - personal knowledge graph from your notes."""
    obj = ctx.ensure_object(dict)
    obj["config_path"] = config_path
    obj["vault"] = vault


@cli.command()
@click.argument("path", required=False, type=click.Path(file_okay=False))
@click.pass_context
def init(ctx, path: Optional[str]):
    """Initialize a vault directory and write the config file."""
    obj = ctx.ensure_object(dict)
    if path:
        obj["vault"] = path
    cfg = _config(ctx)
    vault = cfg.vault.path

    vault.mkdir(parents=True, exist_ok=True)
    cfg.vault.data_dir.mkdir(parents=True, exist_ok=True)
    with GraphDatabase(cfg.vault.db_path):
        pass

    config_file = write_config(obj.get("config_path") or USER_CONFIG_PATH, cfg)

    click.echo(f"Vault initialized at {vault}")
    click.echo(f"Config written to {config_file}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show vault, processing and graph stats."""
    cfg, db = _open_vault(ctx)
    counts = DocumentStore(db).counts()
    by_type = EntityStore(db).counts_by_type()
    relationships = RelationshipStore(db).count()

    click.echo(f"Vault:       {cfg.vault.path}")
    click.echo(f"Documents:   {counts.total} indexed ({counts.files} files, {counts.entries} entries)")
    click.echo()
    click.echo("Processing:")
    click.echo(f"  Processed:  {counts.processed}")
    click.echo(f"  Pending:    {counts.pending}")
    click.echo(f"  Errored:    {counts.errored}")
    click.echo()
    click.echo("Graph:")
    type_summary = ", ".join(f"{t}: {n}" for t, n in by_type.items())
    click.echo(f"  Entities:      {sum(by_type.values())}" + (f" ({type_summary})" if type_summary else ""))
    click.echo(f"  Relationships: {relationships}")

    errors = get_logger().get_entries(category="error", limit=RECENT_ERRORS)
    if errors:
        click.echo()
        click.echo("Recent errors:")
        for entry in errors:
            details = entry.get("details", {})
            label = details.get("context", {}).get("label", "")
            prefix = f"{label}: " if label else ""
            click.echo(
                f"  {entry['ts'][:19]} {prefix}{details.get('error_type')}: {details.get('error_message')}"
            )


@cli.command()
@click.option("--message", "-m", help="Entry text (opens $EDITOR when omitted)")
@click.option("--date", "entry_date", help="Entry date (YYYY-MM-DD), defaults to today")
@click.pass_context
def add(ctx, message: Optional[str], entry_date: Optional[str]):
    """Add a manual entry."""
    _, db = _open_vault(ctx)
    content = message if message is not None else click.edit("")
    content = (content or "").strip()
    if not content:
        click.echo("Empty entry, nothing saved.")
        return

    doc_id = DocumentStore(db).create_entry(content, entry_date)
    click.echo(f"Entry saved ({doc_id}). Run `notegraph process` to extract entities.")


@cli.command()
@click.argument("doc_id")
@click.option("--message", "-m", help="Replacement text (opens $EDITOR when omitted)")
@click.pass_context
def edit(ctx, doc_id: str, message: Optional[str]):
    """Edit a manual entry; it is queued for reprocessing."""
    _, db = _open_vault(ctx)
    documents = DocumentStore(db)
    doc = documents.get(doc_id)
    if doc is None:
        raise click.ClickException(f"Document not found: {doc_id}")
    if doc.kind != "entry":
        raise click.ClickException(f"Only entries can be edited; {doc.label} is a vault file.")

    content = message if message is not None else click.edit(doc.content or "")
    if content is None or content.strip() == (doc.content or "").strip():
        click.echo("No changes.")
        return
    if not content.strip():
        raise click.ClickException("Entry text cannot be empty.")

    documents.update_entry(doc.id, content.strip())
    click.echo(f"Entry updated ({doc.id}). Run `notegraph process` to re-extract entities.")


@cli.command()
@click.pass_context
def scan(ctx):
    """Scan the vault for new, changed and deleted files."""
    cfg, db = _open_vault(ctx)
    try:
        result = VaultSynchronizer(db).sync(cfg.vault.path)
    except OSError as e:
        raise click.ClickException(f"Scan aborted: {e}")

    click.echo(f"Scanning vault... {result.total} files found")
    click.echo(
        f"  {result.new} new, {result.modified} modified, "
        f"{result.unchanged} unchanged, {result.deleted} deleted"
    )
    pending = DocumentStore(db).counts().pending
    if pending:
        click.echo(f"Run `notegraph process` to extract entities from {pending} pending documents")


@cli.command()
@click.option("--relink", is_flag=True, help="Reprocess ALL documents with current entity knowledge")
@click.option("--concurrency", "-j", type=click.IntRange(min=1), help="Documents processed in parallel")
@click.pass_context
def process(ctx, relink: bool, concurrency: Optional[int]):
    """Run extraction on pending and errored documents."""
    cfg, db = _open_vault(ctx)
    orchestrator = ExtractionOrchestrator(db, _llm_client(ctx, cfg), cfg)

    if relink:
        click.echo("Reset all documents for relinking...")

    def on_progress(doc: Document, result: Optional[ProcessResult], error, done: int, total: int) -> None:
        prefix = f"[{done}/{total}]"
        if error is not None:
            click.echo(f"{prefix} ✗ {doc.label} → error: {error}")
        elif result.skipped:
            click.echo(f"{prefix} - {doc.label} → skipped (too short)")
        else:
            click.echo(
                f"{prefix} ✓ {doc.label} → {result.entity_count} entities, "
                f"{result.relationship_count} relationships"
            )

    summary = orchestrator.process_pending(relink=relink, concurrency=concurrency, on_progress=on_progress)
    if summary.total == 0:
        click.echo("No pending documents. Nothing to process.")
        return

    click.echo()
    click.echo(
        f"Done: {summary.processed} processed, {summary.errored} errored, "
        f"{summary.entities} entities, {summary.relationships} relationships"
    )

    logger = get_logger()
    stats = logger.get_session_stats()
    if stats["errors"]:
        click.echo(f"{stats['errors']} errors logged to {logger.log_path}")


def _group_related(entity_id: str, store: EntityStore) -> List[Tuple[Entity, List[str]]]:
    """Collapse multiple edges to the same neighbour into one line."""
    grouped: Dict[str, Tuple[Entity, List[str]]] = {}
    for rel in store.related(entity_id):
        label = f"{rel.arrow} {rel.type}"
        if rel.entity.id in grouped:
            if label not in grouped[rel.entity.id][1]:
                grouped[rel.entity.id][1].append(label)
        else:
            grouped[rel.entity.id] = (rel.entity, [label])
    return list(grouped.values())


@cli.command()
@click.argument("query")
@click.pass_context
def entity(ctx, query: str):
    """Show an entity, its aliases, neighbours and source documents."""
    _, db = _open_vault(ctx)
    store = EntityStore(db)
    found = store.get_by_name_or_id(query)
    if found is None:
        matches = store.search(query, limit=1)
        found = matches[0] if matches else None
    if found is None:
        raise click.ClickException(f"Entity not found: {query}")

    header = f"{found.name} ({found.type})"
    click.echo(header)
    click.echo("━" * len(header))
    if found.aliases:
        click.echo(f"Also known as: {', '.join(found.aliases)}")

    related = _group_related(found.id, store)
    if related:
        click.echo()
        click.echo("Related Entities:")
        for other, labels in related:
            click.echo(f"  {other.name} ({other.type}): {', '.join(labels)}")

    docs = store.documents_for(found.id)
    if docs:
        click.echo()
        click.echo("Found In:")
        for doc in docs:
            source = doc.file_path or f"(entry {doc.date or ''})"
            click.echo(f"  {source}: {doc.title or ''}")


@cli.command()
@click.argument("query", nargs=-1, required=True)
@click.pass_context
def search(ctx, query: Tuple[str, ...]):
    """Search entities by name, alias and document text."""
    _, db = _open_vault(ctx)
    store = EntityStore(db)
    text = " ".join(query)

    results: Dict[str, Entity] = {}
    for found in store.search(text) + store.search_by_documents(text):
        results.setdefault(found.id, found)

    if not results:
        click.echo(f"No results for '{text}'.")
        return

    for found in results.values():
        aliases = f"  aka {', '.join(found.aliases[:3])}" if found.aliases else ""
        click.echo(f"{found.name} ({found.type}) [{found.id}]{aliases}")


@cli.command()
@click.argument("question", nargs=-1, required=True)
@click.pass_context
def ask(ctx, question: Tuple[str, ...]):
    """Ask a question about your notes."""
    cfg, db = _open_vault(ctx)
    text = " ".join(question)
    retriever = Retriever(db, _llm_client(ctx, cfg), cfg)
    try:
        result = retriever.answer(text)
    except LLMError as e:
        raise click.ClickException(str(e))

    click.echo(result.answer)
    if result.referenced_entity_ids:
        store = EntityStore(db)
        names = [e.name for e in (store.get(i) for i in result.referenced_entity_ids) if e]
        click.echo()
        click.echo(f"Sources: {', '.join(names)}")


def _highlight(text: str, terms: List[str]) -> str:
    for term in sorted(set(t for t in terms if t), key=len, reverse=True):
        text = re.sub(
            f"({re.escape(term)})",
            lambda m: click.style(m.group(1), fg="yellow"),
            text,
            flags=re.IGNORECASE,
        )
    return text


@cli.command()
@click.argument("day", required=False)
@click.pass_context
def today(ctx, day: Optional[str]):
    """Show the documents for a date (YYYY-MM-DD) with their entities."""
    _, db = _open_vault(ctx)
    day = day or date_cls.today().isoformat()
    docs = DocumentStore(db).list_by_date(day)
    if not docs:
        click.echo(f"No entries for {day}.")
        return

    store = EntityStore(db)
    click.echo(f"{day}: {len(docs)} entries")
    for doc in docs:
        click.echo()
        click.echo(f"━━━ {doc.title or '(untitled)'} [{doc.file_path or 'entry'}] ━━━")
        text = doc.text
        if not text.strip():
            click.echo("  (empty)")
            continue

        entities = store.for_document(doc.id)
        if entities:
            click.echo(_highlight(text, [e.name for e in entities]))
            grouped: Dict[str, List[str]] = {}
            for e in entities:
                grouped.setdefault(e.type, []).append(e.name)
            tags = "  |  ".join(f"{t}: {', '.join(names)}" for t, names in grouped.items())
            click.echo(click.style(f"  [{tags}]", dim=True))
        elif doc.status == DocumentStatus.PROCESSED:
            click.echo(text)
            click.echo(click.style("  [no entities extracted]", dim=True))
        else:
            click.echo(text)
            click.echo(click.style("  [pending; run `notegraph process`]", dim=True))


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def rebuild(ctx, yes: bool):
    """Delete the whole graph and reset all documents for reprocessing."""
    _, db = _open_vault(ctx)
    if not yes:
        click.confirm("Delete all entities and relationships?", abort=True)

    count = db.reset_graph()
    click.echo(f"Graph cleared. {count} documents reset to pending.")
    click.echo("Run `notegraph process` to rebuild the graph.")


if __name__ == "__main__":
    cli()
