"""
PromptVault CLI — entry point for all operations.

Usage:
    promptvault init            # Set a PIN and link a GitHub token
    promptvault status          # Show vault and sync status
    promptvault list            # List prompts
    promptvault show ID         # Show one prompt and its {{variables}}
    promptvault add --title T   # Add a prompt (content from --content or stdin)
    promptvault edit ID         # Change fields of a prompt
    promptvault delete ID       # Delete a prompt
    promptvault favorite ID     # Toggle the favorite flag
    promptvault use ID --var k=v  # Fill variables, print, count a usage
    promptvault export          # Write a JSON backup
    promptvault import FILE     # Merge a JSON backup
    promptvault sync            # Pull the cloud copy over local data
    promptvault token           # Replace the GitHub token
    promptvault reset           # Delete all local vault data
    promptvault version         # Show version

Prompt IDs may be abbreviated to any unique prefix.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

from promptvault import lifecycle
from promptvault import prompts as ops
from promptvault.config import VaultConfig, get_config
from promptvault.errors import NotFound, VaultError
from promptvault.remote.base import RemoteVaultStore
from promptvault.remote.gist import GistStore
from promptvault.sync.orchestrator import SyncOrchestrator, SyncStatus
from promptvault.vault.models import PromptRecord
from promptvault.vault.storage import FileStore, VaultStorage

SessionAction = Callable[[SyncOrchestrator, argparse.Namespace], Awaitable[int]]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="promptvault",
        description="PromptVault — an encrypted prompt library synced to a private GitHub gist.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Set up the vault")
    init_parser.add_argument("--offline", action="store_true", help="Don't link a GitHub token")
    init_parser.add_argument("--force", action="store_true", help="Replace an existing vault")

    # status
    subparsers.add_parser("status", help="Show vault and sync status")

    # list
    list_parser = subparsers.add_parser("list", help="List prompts")
    list_parser.add_argument("--favorites", action="store_true", help="Only favorites")
    list_parser.add_argument("--category", type=str, help="Only this category")
    list_parser.add_argument("--search", type=str, help="Case-insensitive text filter")

    # show
    show_parser = subparsers.add_parser("show", help="Show one prompt")
    show_parser.add_argument("id", help="Prompt ID or unique prefix")

    # add
    add_parser = subparsers.add_parser("add", help="Add a prompt")
    add_parser.add_argument("--title", required=True, help="Prompt title")
    add_parser.add_argument("--content", type=str, help="Prompt text (default: read stdin)")
    add_parser.add_argument("--category", default="", help="Category")
    add_parser.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")
    add_parser.add_argument("--favorite", action="store_true", help="Mark as favorite")

    # edit
    edit_parser = subparsers.add_parser("edit", help="Edit a prompt")
    edit_parser.add_argument("id", help="Prompt ID or unique prefix")
    edit_parser.add_argument("--title", type=str, help="New title")
    edit_parser.add_argument("--content", type=str, help="New text")
    edit_parser.add_argument("--category", type=str, help="New category")
    edit_parser.add_argument("--tag", action="append", help="Replace tags (repeatable)")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a prompt")
    delete_parser.add_argument("id", help="Prompt ID or unique prefix")

    # favorite
    fav_parser = subparsers.add_parser("favorite", help="Toggle favorite")
    fav_parser.add_argument("id", help="Prompt ID or unique prefix")

    # use
    use_parser = subparsers.add_parser("use", help="Fill variables and print a prompt")
    use_parser.add_argument("id", help="Prompt ID or unique prefix")
    use_parser.add_argument(
        "--var", action="append", default=[], metavar="NAME=VALUE", help="Variable value"
    )

    # export
    export_parser = subparsers.add_parser("export", help="Write a JSON backup")
    export_parser.add_argument("--output", "-o", type=str, help="File (default: stdout)")

    # import
    import_parser = subparsers.add_parser("import", help="Merge a JSON backup")
    import_parser.add_argument("file", help="Backup file, or - for stdin")

    # sync
    subparsers.add_parser("sync", help="Pull the cloud copy (overwrites local data)")

    # token
    subparsers.add_parser("token", help="Replace the GitHub token")

    # reset
    reset_parser = subparsers.add_parser("reset", help="Delete all local vault data")
    reset_parser.add_argument("--yes", "-y", action="store_true", help="Don't ask")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from promptvault import __version__

        print(f"promptvault {__version__}")
        return 0

    cfg = get_config()
    _configure_logging(cfg, args.verbose)

    if args.command == "init":
        return _cmd_init(args)
    elif args.command == "status":
        return _cmd_status(args)
    elif args.command == "reset":
        return _cmd_reset(args)
    elif args.command in SESSION_COMMANDS:
        return _run_session(args, SESSION_COMMANDS[args.command])
    else:
        parser.print_help()
        return 0


def _configure_logging(cfg: VaultConfig, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else cfg.log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _storage(cfg: VaultConfig) -> VaultStorage:
    return VaultStorage(FileStore(cfg.store_path))


def _make_remote(cfg: VaultConfig) -> RemoteVaultStore:
    return GistStore.from_config(cfg)


def _format_time(ms: int) -> str:
    if not ms:
        return "never"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


# ── Setup commands ───────────────────────────────────────────────────


def _cmd_init(args: argparse.Namespace) -> int:
    cfg = get_config()
    storage = _storage(cfg)
    if lifecycle.is_initialized(storage) and not args.force:
        print("A vault already exists. Use --force to replace it.")
        return 1

    pin = getpass.getpass("New PIN: ")
    if getpass.getpass("Repeat PIN: ") != pin:
        print("Error: PINs do not match.")
        return 1
    token = None
    if not args.offline:
        token = getpass.getpass("GitHub token (gist scope, empty for offline): ").strip() or None

    async def _setup() -> lifecycle.SetupResult:
        remote = _make_remote(cfg)
        try:
            return await lifecycle.setup_vault(storage, remote, pin, token)
        finally:
            await remote.close()

    try:
        result = asyncio.run(_setup())
    except (ValueError, VaultError) as e:
        print(f"Error: {e}")
        return 1

    if result.online:
        print(f"Vault ready, linked to {result.identity}.")
        if result.remote_handle:
            print(f"Found an existing cloud vault ({result.remote_handle}).")
    else:
        print("Vault ready (offline). Add a token later with 'promptvault token'.")
    return 0


def _cmd_reset(args: argparse.Namespace) -> int:
    storage = _storage(get_config())
    if not args.yes:
        answer = input("Delete all local vault data? The cloud copy is kept. [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1
    lifecycle.reset_vault(storage)
    print("Local vault data deleted.")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    storage = _storage(get_config())
    if not lifecycle.is_initialized(storage):
        print("Vault:    not set up (run 'promptvault init')")
        return 0
    return _run_session(args, _status)


async def _status(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    state = orch.state()
    print(f"Vault:    {state.prompt_count} prompts")
    print(f"Account:  {state.identity or 'none (offline)'}")
    print(f"Gist:     {state.remote_handle or 'none'}")
    print(f"Sync:     {state.status}" + (f" ({state.message})" if state.message else ""))
    print(f"Synced:   {_format_time(state.last_sync)}")
    return 0


# ── Session commands ─────────────────────────────────────────────────


def _run_session(args: argparse.Namespace, action: SessionAction) -> int:
    cfg = get_config()
    storage = _storage(cfg)
    if not lifecycle.is_initialized(storage):
        print("Vault is not set up. Run 'promptvault init' first.")
        return 1
    pin = getpass.getpass("PIN: ")
    return asyncio.run(_session(cfg, storage, pin, action, args))


async def _session(
    cfg: VaultConfig,
    storage: VaultStorage,
    pin: str,
    action: SessionAction,
    args: argparse.Namespace,
) -> int:
    remote = _make_remote(cfg)
    orch = SyncOrchestrator(storage, remote, debounce_seconds=cfg.debounce_seconds)
    try:
        if not await orch.unlock(pin):
            print("Error: wrong PIN.")
            return 1
        if orch.status is SyncStatus.ERROR:
            print(f"Warning: {orch.message}", file=sys.stderr)

        try:
            rc = await action(orch, args)
        except VaultError as e:
            print(f"Error: {e}")
            return 1

        if orch.pending:
            await orch.flush()
            if orch.status is SyncStatus.ERROR:
                print(f"Warning: changes not saved to cloud: {orch.message}", file=sys.stderr)
                return 1
        return rc
    finally:
        await orch.lock()
        # A push started by lock() still needs the client
        await orch.settle()
        await remote.close()


def _resolve(orch: SyncOrchestrator, ref: str) -> PromptRecord:
    """Find a prompt by full ID or unique ID prefix."""
    matches = [p for p in orch.prompts if p.id == ref]
    if not matches:
        matches = [p for p in orch.prompts if p.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise NotFound(f"ID prefix {ref!r} is ambiguous ({len(matches)} prompts)")
    raise NotFound(f"No prompt matches {ref!r}")


def _matches(p: PromptRecord, args: argparse.Namespace) -> bool:
    if args.favorites and not p.is_favorite:
        return False
    if args.category is not None and p.category != args.category:
        return False
    if args.search:
        needle = args.search.lower()
        haystack = " ".join([p.title, p.content, p.category, *p.tags]).lower()
        if needle not in haystack:
            return False
    return True


async def _list(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    shown = [p for p in orch.prompts if _matches(p, args)]
    if not shown:
        print("No prompts.")
        return 0
    for p in shown:
        star = "*" if p.is_favorite else " "
        category = f"[{p.category}] " if p.category else ""
        print(f"{p.id[:8]} {star} {category}{p.title}  (used {p.usage_count}x)")
    return 0


async def _show(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    p = _resolve(orch, args.id)
    print(f"ID:        {p.id}")
    print(f"Title:     {p.title}")
    print(f"Category:  {p.category or '-'}")
    print(f"Tags:      {', '.join(p.tags) or '-'}")
    print(f"Favorite:  {'yes' if p.is_favorite else 'no'}")
    print(f"Used:      {p.usage_count}x")
    print(f"Updated:   {_format_time(p.updated_at)}")
    variables = ops.extract_variables(p.content)
    if variables:
        print(f"Variables: {', '.join(variables)}")
    print()
    print(p.content)
    return 0


async def _add(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    content = args.content if args.content is not None else sys.stdin.read()
    if not content.strip():
        print("Error: prompt content is empty.")
        return 1
    record = orch.add_prompt(
        ops.new_prompt(
            args.title,
            content,
            category=args.category,
            tags=args.tag,
            is_favorite=args.favorite,
        )
    )
    print(f"Added {record.id[:8]} {record.title}")
    return 0


async def _edit(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    p = _resolve(orch, args.id)
    changes = {}
    if args.title is not None:
        changes["title"] = args.title
    if args.content is not None:
        changes["content"] = args.content
    if args.category is not None:
        changes["category"] = args.category
    if args.tag is not None:
        changes["tags"] = args.tag
    if not changes:
        print("Nothing to change.")
        return 1
    updated = orch.update_prompt(p.id, **changes)
    print(f"Updated {updated.id[:8]} {updated.title}")
    return 0


async def _delete(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    p = _resolve(orch, args.id)
    orch.delete_prompt(p.id)
    print(f"Deleted {p.id[:8]} {p.title}")
    return 0


async def _favorite(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    p = orch.toggle_favorite(_resolve(orch, args.id).id)
    print(f"{p.title}: {'favorite' if p.is_favorite else 'not favorite'}")
    return 0


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    values = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected NAME=VALUE, got {pair!r}")
        values[name.strip()] = value
    return values


async def _use(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    p = _resolve(orch, args.id)
    try:
        values = _parse_vars(args.var)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    missing = [v for v in ops.extract_variables(p.content) if v not in values]
    if missing:
        print(f"Warning: unfilled variables: {', '.join(missing)}", file=sys.stderr)
    print(ops.fill_variables(p.content, values))
    orch.record_usage(p.id)
    return 0


async def _export(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    text = orch.export_prompts()
    if args.output:
        try:
            Path(args.output).write_text(text + "\n", encoding="utf-8")
        except OSError as e:
            print(f"Error: cannot write {args.output}: {e}")
            return 1
        print(f"Exported {len(orch.prompts)} prompts to {args.output}")
    else:
        print(text)
    return 0


async def _import(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    if args.file == "-":
        text = sys.stdin.read()
    else:
        try:
            text = Path(args.file).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error: cannot read {args.file}: {e}")
            return 1
    count = orch.import_prompts(text)
    print(f"Imported {count} new prompts.")
    return 0


async def _sync(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    if await orch.force_sync():
        print(f"Pulled {len(orch.prompts)} prompts from the cloud.")
        return 0
    print(f"Error: {orch.message or 'sync failed'}")
    return 1


async def _token(orch: SyncOrchestrator, args: argparse.Namespace) -> int:
    token = getpass.getpass("New GitHub token: ")
    identity = await orch.update_credential(token)
    print(f"Token updated for {identity}.")
    if orch.status is SyncStatus.ERROR:
        print(f"Warning: {orch.message}", file=sys.stderr)
    return 0


SESSION_COMMANDS: dict[str, SessionAction] = {
    "list": _list,
    "show": _show,
    "add": _add,
    "edit": _edit,
    "delete": _delete,
    "favorite": _favorite,
    "use": _use,
    "export": _export,
    "import": _import,
    "sync": _sync,
    "token": _token,
}


if __name__ == "__main__":
    sys.exit(main())
