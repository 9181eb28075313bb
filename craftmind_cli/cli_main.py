import asyncio
import json
import sys
import threading
from pathlib import Path

from rich import box
from rich.console import Console
from rich.table import Table

from agents.skills.repository import Skill, SkillRepository
from core.config_manager import ConfigManager
from core.exceptions import CraftMindError
from core.logging_utils import log_json
from core.sanitizer import mask_secrets
from craftmind_cli.cli_options import CLIParseError, parse_cli_args
from memory.store import MemoryStore

console = Console()


def _project_root(args) -> Path:
    return Path(args.root).resolve() if args.root else Path.cwd()


def _storage_path(root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else root / path


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------

def _print_new_chat(world, seen: int) -> int:
    chat_log = getattr(world, "chat_log", None)
    if chat_log is None:
        return seen
    for line in chat_log[seen:]:
        console.print(f"[cyan]<{getattr(world, 'username', 'bot')}>[/cyan] {line}")
    return len(chat_log)


def _start_stdin_reader(queue: asyncio.Queue) -> None:
    """Feed stdin lines into *queue* from a daemon thread; ``None`` marks EOF."""
    event_loop = asyncio.get_running_loop()

    def _read():
        for line in sys.stdin:
            event_loop.call_soon_threadsafe(queue.put_nowait, line)
        event_loop.call_soon_threadsafe(queue.put_nowait, None)

    threading.Thread(target=_read, name="craftmind-stdin", daemon=True).start()


async def _pump_stdin(runtime, operator: str) -> None:
    """Forward stdin lines as chat; once stdin closes, stop the loop when it goes idle."""
    chat, loop, world = runtime["chat"], runtime["loop"], runtime["world"]
    queue: asyncio.Queue = asyncio.Queue()
    _start_stdin_reader(queue)
    seen = _print_new_chat(world, 0)
    while True:
        line = await queue.get()
        if line is None:
            break
        line = line.strip()
        if line:
            await chat.handle(operator, line)
        seen = _print_new_chat(world, seen)
    while not loop.state.is_idle or loop.mailbox.pending:
        await asyncio.sleep(loop.idle_poll_seconds or 0.1)
        seen = _print_new_chat(world, seen)
    loop.stop()


async def _run_agent(runtime, operator: str, max_runs):
    world, loop = runtime["world"], runtime["loop"]
    await world.connect()
    try:
        await loop.initialize()
        pump = asyncio.create_task(_pump_stdin(runtime, operator))
        try:
            state = await loop.run_forever(max_runs=max_runs)
        finally:
            pump.cancel()
        return state
    finally:
        await world.disconnect()


def _handle_run(args, cfg, root: Path) -> int:
    from core.runtime import create_runtime

    runtime = create_runtime(root, cfg=cfg, goal=args.goal)
    state = asyncio.run(_run_agent(runtime, args.operator, args.max_runs))

    table = Table(title="Final state", box=box.ROUNDED)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Goal", state.current_goal or "None")
    table.add_row("Plan", ", ".join(state.current_plan) if state.current_plan else "None")
    table.add_row("Last action", state.last_action or "None")
    table.add_row("Result", state.last_action_result or "None")
    table.add_row("Inventory", ", ".join(f"{k}: {v}" for k, v in sorted(state.inventory.items())) or "Empty")
    console.print(table)
    return 0


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------

def _handle_show_config(_args, cfg, _root) -> int:
    print(json.dumps(mask_secrets(cfg.show_config()), indent=2, default=str))
    return 0


def _handle_bootstrap(_args, cfg, _root) -> int:
    cfg.bootstrap()
    console.print(f"Config file: {cfg.config_file}")
    return 0


def _handle_memory(args, cfg, root: Path) -> int:
    store = MemoryStore(
        _storage_path(root, cfg.get("memory_path")),
        max_recent_actions=cfg.get("max_recent_actions"),
    )
    memory = store.load()

    table = Table(title="Recent actions", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Action", style="bold")
    table.add_column("Result")
    records = memory.recent_actions[-args.limit:] if args.limit > 0 else memory.recent_actions
    for index, record in enumerate(records, 1):
        table.add_row(str(index), record.action, record.result)
    console.print(table)
    console.print(store.long_term_summary())
    console.print(store.spatial_memory_summary())
    return 0


def _handle_skills(args, cfg, root: Path) -> int:
    repo = SkillRepository(_storage_path(root, cfg.get("skills_path")))
    repo.load()

    if args.skills_command == "list":
        table = Table(title=f"Skills ({len(repo)})", box=box.ROUNDED)
        table.add_column("Signature", style="bold")
        table.add_column("Description")
        for skill in repo.get_all():
            table.add_row(skill.signature(), skill.description)
        console.print(table)
        return 0

    if args.skills_command == "add":
        code = Path(args.code_file).read_text(encoding="utf-8")
        skill = Skill(name=args.name, description=args.description, parameters=list(args.parameters), code=code)
        problems = skill.problems()
        if problems:
            console.print(f"[red]Invalid skill:[/red] {'; '.join(problems)}")
            return 1
        if not repo.add(skill):
            console.print(f"[red]Skill {args.name!r} already exists.[/red]")
            return 1
        console.print(f"[green]Added skill[/green] {skill.signature()}")
        return 0

    if not repo.remove(args.name):
        console.print(f"[red]No skill named {args.name!r}.[/red]")
        return 1
    console.print(f"[green]Removed skill[/green] {args.name}")
    return 0


COMMAND_DISPATCH = {
    "run": _handle_run,
    "show-config": _handle_show_config,
    "bootstrap": _handle_bootstrap,
    "memory": _handle_memory,
    "skills": _handle_skills,
}


def main(argv=None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    try:
        args = parse_cli_args(raw_argv)
    except CLIParseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if exc.usage:
            print(exc.usage, file=sys.stderr)
        return exc.code

    root = _project_root(args)
    try:
        cfg = ConfigManager(config_file=_storage_path(root, args.config))
        return COMMAND_DISPATCH[args.command](args, cfg, root)
    except CraftMindError as exc:
        log_json("ERROR", "craftmind_command_failed", details={"command": args.command, "error": str(exc)})
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
