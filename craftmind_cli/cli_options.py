from __future__ import annotations

import argparse
from typing import Sequence


class CLIParseError(Exception):
    def __init__(self, message: str, *, code: int = 2, usage: str | None = None):
        super().__init__(message)
        self.code = code
        self.usage = usage


class CraftMindArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CLIParseError(message, usage=self.format_usage())


def build_parser() -> CraftMindArgumentParser:
    parser = CraftMindArgumentParser(
        prog="craftmind",
        description="Autonomous Minecraft agent: observe, think, validate, act, analyse.",
    )
    parser.add_argument("--config", default="craftmind.config.json", help="Path to the JSON config file.")
    parser.add_argument("--root", default=None, help="Directory storage paths are relative to (default: cwd).")
    sub = parser.add_subparsers(dest="command", parser_class=CraftMindArgumentParser)

    run = sub.add_parser("run", help="Run the agent; each stdin line is sent as operator chat.")
    run.add_argument("--goal", default=None, help="Initial goal. Without one the agent waits for instructions.")
    run.add_argument("--max-runs", type=int, default=None, help="Stop after this many graph runs.")
    run.add_argument("--operator", default="operator", help="Username stdin chat is sent as.")

    sub.add_parser("show-config", help="Print the effective configuration.")
    sub.add_parser("bootstrap", help="Write a starter config file if none exists.")

    memory = sub.add_parser("memory", help="Show stored memory.")
    memory.add_argument("--limit", type=int, default=10, help="Recent actions to show.")

    skills = sub.add_parser("skills", help="Manage the skill library.")
    skills_sub = skills.add_subparsers(dest="skills_command", parser_class=CraftMindArgumentParser)
    skills_sub.add_parser("list", help="List stored skills.")
    add = skills_sub.add_parser("add", help="Add a skill from a Python file.")
    add.add_argument("name")
    add.add_argument("--description", required=True)
    add.add_argument("--param", action="append", default=[], dest="parameters", help="Parameter name (repeatable).")
    add.add_argument("--code-file", required=True, help="File holding the procedure body.")
    remove = skills_sub.add_parser("remove", help="Remove a skill.")
    remove.add_argument("name")
    return parser


def parse_cli_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(list(argv))
    if args.command is None:
        raise CLIParseError("a command is required", usage=parser.format_usage())
    if args.command == "skills" and args.skills_command is None:
        raise CLIParseError("skills needs one of: list, add, remove", usage=parser.format_usage())
    if args.command == "run" and args.max_runs is not None and args.max_runs < 1:
        raise CLIParseError("--max-runs must be at least 1", usage=parser.format_usage())
    return args
