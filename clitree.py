#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.11"
# dependencies = []
# ///
"""Clitree - command tree discovery for CLI tools.

Walks a command-line tool through its `-h` help output, recursively, and
materializes every subcommand, description and flag as one JSON document.
Nothing beyond help and version queries is ever executed.

Storage model:
- Documents live under `~/.config/clitree/data/`.
- One JSON file per tool (e.g. `avalanche_command_tree.json`).
- `CLITREE_HOME` environment variable overrides the storage location.

Usage:
    clitree build avalanche                   # Walk `avalanche` and save its tree
    clitree build avalanche --print           # Also print the document
    clitree build ./bin/tool -o tree.json     # Save to an explicit path
    clitree version avalanche                 # Print the detected version
    clitree validate tree.json                # Check a saved document
"""

from __future__ import annotations

import argparse
import concurrent.futures
import json
import os
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Final, Iterable, Protocol, TypedDict

# Constants
HELP_FLAG: Final[str] = "-h"
VERSION_FLAG: Final[str] = "--version"
UNKNOWN_VERSION: Final[str] = "Unknown"
AVAILABLE_COMMANDS_HEADER: Final[str] = "Available Commands:"
FLAGS_HEADER: Final[str] = "Flags:"

DEFAULT_TIMEOUT_S: Final[int] = 15
DEFAULT_MAX_DEPTH: Final[int] = 8
DEFAULT_MAX_WORKERS: Final[int] = 1

VERSION_RE: Final[re.Pattern[str]] = re.compile(r"\d+\.\d+\.\d+")

# `-v, --verbose`, `    --timeout int   request timeout`, `--out <file>  ...`
# The type token must follow the long flag after exactly one space; help
# layouts separate the description column with two or more.
FLAG_HEADER_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s*"
    r"(?:(?P<short>-\w[\w-]*),?\s*)?"
    r"--(?P<long>\w[\w-]*)"
    r"(?: (?P<type><[\w-]+>|[\w.-]+))?"
    r"(?:\s+(?P<description>.*?))?"
    r"\s*$"
)

# Trailers cobra prints after the flags table: `Global Flags:` style
# sub-headers and the `Use "tool [command] --help" ...` footer.
FLAG_SUBSECTION_RE: Final[re.Pattern[str]] = re.compile(r"^\w[\w ]* Flags:$")
USAGE_FOOTER_RE: Final[re.Pattern[str]] = re.compile(
    r'^Use ".*" for more information'
)

CommandPath = tuple[str, ...]


class CanonicalFlag(TypedDict):
    type: str
    description: str


class AliasFlag(TypedDict):
    aliasOf: str


FlagEntry = CanonicalFlag | AliasFlag


class CommandNode(TypedDict):
    description: str
    flags: dict[str, FlagEntry]
    subcommands: dict[str, "CommandNode"]


class CommandTreeDocument(TypedDict):
    version: str
    tree: CommandNode


def _node_schema() -> dict:
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "description": {"type": "string"},
            "flags": {
                "type": "object",
                "additionalProperties": {
                    "oneOf": [
                        {
                            "type": "object",
                            "additionalProperties": False,
                            "properties": {
                                "type": {"type": "string"},
                                "description": {"type": "string"},
                            },
                            "required": ["type", "description"],
                        },
                        {
                            "type": "object",
                            "additionalProperties": False,
                            "properties": {
                                "aliasOf": {"type": "string", "minLength": 1},
                            },
                            "required": ["aliasOf"],
                        },
                    ]
                },
            },
            "subcommands": {
                "type": "object",
                "additionalProperties": {"$ref": "#/$defs/node"},
            },
        },
        "required": ["description", "flags", "subcommands"],
    }


def command_tree_json_schema() -> dict:
    """JSON Schema for the document written by `clitree build`."""
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "version": {"type": "string", "minLength": 1},
            "tree": {"$ref": "#/$defs/node"},
        },
        "$defs": {"node": _node_schema()},
        "required": ["version", "tree"],
    }


def _validate_flag_entry(*, name: str, entry: object) -> FlagEntry:
    if not isinstance(entry, dict):
        raise ValueError(f"flag {name!r} must be an object")
    if "aliasOf" in entry:
        target = entry.get("aliasOf")
        if set(entry) != {"aliasOf"} or not isinstance(target, str) or not target:
            raise ValueError(f"alias flag {name!r} must only carry a non-empty aliasOf")
        return {"aliasOf": target}
    type_hint = entry.get("type")
    description = entry.get("description")
    if not isinstance(type_hint, str) or not isinstance(description, str):
        raise ValueError(f"flag {name!r} must carry string type and description")
    return {"type": type_hint, "description": description}


def _validate_node(*, payload: object, label: str) -> CommandNode:
    if not isinstance(payload, dict):
        raise ValueError(f"node {label!r} must be an object")
    description = payload.get("description")
    if not isinstance(description, str):
        raise ValueError(f"node {label!r} description must be a string")

    raw_flags = payload.get("flags")
    if not isinstance(raw_flags, dict):
        raise ValueError(f"node {label!r} flags must be an object")
    flags: dict[str, FlagEntry] = {}
    for name, entry in raw_flags.items():
        if not isinstance(name, str) or not name:
            raise ValueError(f"node {label!r} flag names must be non-empty strings")
        flags[name] = _validate_flag_entry(name=name, entry=entry)

    raw_subcommands = payload.get("subcommands")
    if not isinstance(raw_subcommands, dict):
        raise ValueError(f"node {label!r} subcommands must be an object")
    subcommands: dict[str, CommandNode] = {}
    for token, sub_payload in raw_subcommands.items():
        if not isinstance(token, str) or not token:
            raise ValueError(f"node {label!r} subcommand names must be non-empty strings")
        subcommands[token] = _validate_node(payload=sub_payload, label=f"{label} {token}")

    return {"description": description, "flags": flags, "subcommands": subcommands}


def validate_command_tree(*, payload: object) -> CommandTreeDocument:
    if not isinstance(payload, dict):
        raise ValueError("payload must be an object")
    version = payload.get("version")
    if not isinstance(version, str) or not version:
        raise ValueError("version must be a non-empty string")
    tree = _validate_node(payload=payload.get("tree"), label="<root>")
    return {"version": version, "tree": tree}


class ClitreeError(RuntimeError):
    pass


class ProcessError(ClitreeError):
    """A help or version query could not be started, timed out or exited non-zero."""


class TreeWalkError(ClitreeError):
    def __init__(self, message: str, *, path: CommandPath) -> None:
        super().__init__(message)
        self.path = path


class CycleDetectedError(TreeWalkError):
    pass


class DepthExceededError(TreeWalkError):
    pass


def clitree_home() -> Path:
    """Return Clitree's home directory.

    Defaults to `~/.config/clitree`, overridable via `CLITREE_HOME`.
    """
    raw = os.environ.get("CLITREE_HOME")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".config" / "clitree"


def clitree_data_dir() -> Path:
    return clitree_home() / "data"


def clitree_config_path() -> Path:
    return clitree_home() / "config.json"


def _load_config() -> dict:
    """Walk settings from `config.json`; an unreadable file means defaults."""
    path = clitree_config_path()
    if not path.is_file():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        # Read on every diagnostic; stay quiet rather than repeat a warning.
        return {}
    return payload if isinstance(payload, dict) else {}


def _config_get(*, key: str) -> object | None:
    # `CLITREE_MAX_DEPTH=3 clitree build tool` beats `"max_depth"` in config.json.
    env_val = os.environ.get(f"CLITREE_{key.upper()}")
    if env_val is not None and env_val.strip() != "":
        return env_val
    return _load_config().get(key)


def _setting_int(*, config_key: str, default: int) -> int:
    cfg = _config_get(key=config_key)
    if cfg is None or isinstance(cfg, bool):
        return default
    try:
        return int(cfg)
    except (TypeError, ValueError):
        return default


def _setting_bool(*, config_key: str, default: bool) -> bool:
    cfg = _config_get(key=config_key)
    if isinstance(cfg, bool):
        return cfg
    if isinstance(cfg, str):
        value = cfg.strip().lower()
        if value in {"1", "true", "yes", "on"}:
            return True
        if value in {"0", "false", "no", "off"}:
            return False
    return default


def _verbose_level() -> int:
    raw = _config_get(key="verbose")
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return 1 if raw else 0
    if isinstance(raw, int):
        if raw <= 0:
            return 0
        return 2 if raw > 1 else 1
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in {"", "0", "false", "no", "off"}:
            return 0
        if value in {"1", "true", "yes", "on"}:
            return 1
        return 2
    return 0


def _max_depth() -> int:
    return max(0, _setting_int(config_key="max_depth", default=DEFAULT_MAX_DEPTH))


def _log(message: str, *, level: int = 1) -> None:
    if _verbose_level() >= level:
        print(f"[clitree] {message}", file=sys.stderr)


def _warn(message: str) -> None:
    print(f"[clitree] warning: {message}", file=sys.stderr)


def _path_label(path: CommandPath) -> str:
    return " ".join(path)


def _query_line(path: CommandPath, flag: str) -> str:
    return shlex.join([*path, flag])


class CommandRunner(Protocol):
    def run(self, command_line: str) -> str: ...


@dataclass(frozen=True, slots=True)
class SubprocessRunner:
    """Runs a quoted command line without a shell and returns its stdout.

    stderr is captured and dropped; help screens that print there are
    diagnostic noise as far as parsing is concerned.
    """

    timeout_s: int = DEFAULT_TIMEOUT_S

    def run(self, command_line: str) -> str:
        try:
            argv = shlex.split(command_line)
        except ValueError as e:
            raise ProcessError(f"Malformed command line: {command_line}") from e
        if not argv:
            raise ProcessError("Command line is empty")

        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                stdin=subprocess.DEVNULL,
                timeout=self.timeout_s,
            )
        except OSError as e:
            raise ProcessError(f"Command could not be started: {argv[0]}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise ProcessError(
                f"Command timed out after {self.timeout_s}s: {command_line}"
            ) from e

        if result.returncode != 0:
            raise ProcessError(
                f"Command failed (exit {result.returncode}): {command_line}"
            )
        return (result.stdout or "").rstrip()


def detect_version(*, runner: CommandRunner, tool: str) -> str:
    """Return `v<major>.<minor>.<patch>` from `<tool> --version`, or "Unknown"."""
    try:
        output = runner.run(_query_line((tool,), VERSION_FLAG))
    except ProcessError as e:
        _warn(f"Error fetching CLI version: {e}")
        return UNKNOWN_VERSION

    match = VERSION_RE.search(output)
    if match is None:
        _log(f"No version number in `{tool} {VERSION_FLAG}` output")
        return UNKNOWN_VERSION
    return f"v{match.group(0)}"


@dataclass(frozen=True, slots=True)
class _PendingFlag:
    """The flag whose description lines are still being collected."""

    name: str
    type_hint: str
    fragments: tuple[str, ...] = ()


def _commit_flag(*, flags: dict[str, FlagEntry], pending: _PendingFlag | None) -> None:
    if pending is None:
        return
    flags[pending.name] = {
        "type": pending.type_hint,
        "description": " ".join(pending.fragments).strip(),
    }


def _record_alias(*, flags: dict[str, FlagEntry], alias: str, target: str) -> None:
    existing = flags.get(alias)
    if existing is not None and existing.get("aliasOf") != target:
        _log(
            f"Short flag {alias} already points at {existing.get('aliasOf')!r}; "
            f"ignoring second target {target!r}"
        )
        return
    flags[alias] = {"aliasOf": target}


def _consume_flag_line(
    *, flags: dict[str, FlagEntry], pending: _PendingFlag | None, line: str
) -> _PendingFlag | None:
    match = FLAG_HEADER_RE.match(line)
    if match is None:
        text = line.strip()
        if not text:
            return pending
        if pending is None:
            _log(f"Skipped flag-section line before any flag: {text!r}", level=2)
            return pending
        return replace(pending, fragments=(*pending.fragments, text))

    _commit_flag(flags=flags, pending=pending)
    name = match.group("long")
    short = match.group("short")
    if short:
        _record_alias(flags=flags, alias=short, target=name)
    inline = match.group("description")
    return _PendingFlag(
        name=name,
        type_hint=match.group("type") or "",
        fragments=(inline,) if inline else (),
    )


def parse_flags(lines: Iterable[str]) -> dict[str, FlagEntry]:
    """Rebuild the flag mapping from the lines of a "Flags:" section.

    Long flags become canonical entries keyed without their `--`; short flags
    become `{"aliasOf": <long name>}` entries keyed as written (`-v`). Lines
    that are not flag headers extend the description of the previous flag.
    """
    flags: dict[str, FlagEntry] = {}
    pending: _PendingFlag | None = None
    for line in lines:
        pending = _consume_flag_line(flags=flags, pending=pending, line=line)
    _commit_flag(flags=flags, pending=pending)
    return flags


def dangling_aliases(flags: dict[str, FlagEntry]) -> list[str]:
    """Short flags whose `aliasOf` target has no canonical entry."""
    out: list[str] = []
    for name, entry in flags.items():
        target = entry.get("aliasOf")
        if target is None:
            continue
        resolved = flags.get(target)
        if resolved is None or "aliasOf" in resolved:
            out.append(name)
    return out


class Region(Enum):
    DESCRIPTION = "description"
    COMMANDS = "commands"
    FLAGS = "flags"


@dataclass(frozen=True, slots=True)
class CommandDetail:
    """Parsed help output of a single command invocation."""

    description: str = ""
    flags: dict[str, FlagEntry] = field(default_factory=dict)
    subcommands: dict[str, str] = field(default_factory=dict)


def _next_region(*, region: Region, text: str) -> Region | None:
    """Return the region a section header switches to, or None for content lines."""
    if text == FLAGS_HEADER:
        return Region.FLAGS
    if text == AVAILABLE_COMMANDS_HEADER and region is not Region.FLAGS:
        return Region.COMMANDS
    return None


def parse_command_details(help_text: str) -> CommandDetail:
    """Split help text into description, subcommand listing and flags.

    This is a best-effort heuristic over cobra-style help screens, not a
    grammar: only the exact `Available Commands:` and `Flags:` lines switch
    regions, and once inside the flags region there is no way back.
    """
    region = Region.DESCRIPTION
    description: list[str] = []
    subcommands: dict[str, str] = {}
    flag_lines: list[str] = []

    for line in help_text.splitlines():
        text = line.strip()
        switched = _next_region(region=region, text=text)
        if switched is not None:
            region = switched
            continue

        if region is Region.DESCRIPTION:
            if text:
                description.append(text)
        elif region is Region.COMMANDS:
            if not text:
                continue
            parts = text.split(None, 1)
            if len(parts) < 2:
                _log(f"Skipped subcommand line without description: {text!r}", level=2)
                continue
            subcommands[parts[0]] = parts[1]
        else:
            if FLAG_SUBSECTION_RE.match(text) or USAGE_FOOTER_RE.match(text):
                _log(f"Skipped trailer in flags section: {text!r}", level=2)
                continue
            flag_lines.append(line)

    return CommandDetail(
        description=" ".join(description).strip(),
        flags=parse_flags(flag_lines),
        subcommands=subcommands,
    )


def fetch_command_details(
    *, runner: CommandRunner, path: CommandPath, strict: bool = False
) -> CommandDetail:
    """Run `<path> -h` and parse it.

    A failed invocation degrades to an empty detail record unless `strict`,
    so one broken subcommand does not abort the rest of the walk.
    """
    try:
        output = runner.run(_query_line(path, HELP_FLAG))
    except ProcessError as e:
        if strict:
            raise
        _warn(f'Error fetching details for "{_path_label(path)}": {e}')
        return CommandDetail()
    return parse_command_details(output)


def _leaf_node(description: str) -> CommandNode:
    return {"description": description, "flags": {}, "subcommands": {}}


def _admit_child(
    *,
    child_path: CommandPath,
    visited: set[CommandPath],
    max_depth: int,
    strict: bool,
) -> bool:
    """Check a child path against the cycle and depth guards.

    Returns False when the child must stay a leaf (lenient mode only).
    """
    token = child_path[-1]
    # Only the direct parent: a name may legitimately recur deeper in the
    # tree, and longer loops run into max_depth.
    parent = child_path[-2] if len(child_path) > 2 else os.path.basename(child_path[0])
    try:
        if child_path in visited or token == parent:
            raise CycleDetectedError(
                f'"{_path_label(child_path[:-1])}" lists {token!r} as its own subcommand',
                path=child_path,
            )
        if len(child_path) - 1 > max_depth:
            raise DepthExceededError(
                f'"{_path_label(child_path)}" is deeper than {max_depth} subcommand levels',
                path=child_path,
            )
    except TreeWalkError as e:
        if strict:
            raise
        _warn(f"{e}; keeping it as a leaf")
        return False
    visited.add(child_path)
    return True


def _fetch_details(
    *,
    runner: CommandRunner,
    paths: list[CommandPath],
    executor: concurrent.futures.ThreadPoolExecutor | None,
) -> list[CommandDetail]:
    if executor is None or len(paths) < 2:
        return [fetch_command_details(runner=runner, path=p) for p in paths]
    futures = [
        executor.submit(fetch_command_details, runner=runner, path=p) for p in paths
    ]
    # Submission order, not completion order: keeps the listing order stable.
    return [future.result() for future in futures]


def _build_node(
    *,
    runner: CommandRunner,
    path: CommandPath,
    detail: CommandDetail,
    visited: set[CommandPath],
    max_depth: int,
    strict: bool,
    executor: concurrent.futures.ThreadPoolExecutor | None,
) -> CommandNode:
    _log(f"Processing command: {_path_label(path)}")

    admitted = [
        token
        for token in detail.subcommands
        if _admit_child(
            child_path=(*path, token), visited=visited, max_depth=max_depth, strict=strict
        )
    ]
    fetched = dict(
        zip(
            admitted,
            _fetch_details(
                runner=runner,
                paths=[(*path, token) for token in admitted],
                executor=executor,
            ),
        )
    )

    subcommands: dict[str, CommandNode] = {}
    for token, inline in detail.subcommands.items():
        if token in fetched:
            child = _build_node(
                runner=runner,
                path=(*path, token),
                detail=fetched[token],
                visited=visited,
                max_depth=max_depth,
                strict=strict,
                executor=executor,
            )
        else:
            child = _leaf_node("")
        if not child["description"]:
            child["description"] = inline
        subcommands[token] = child

    return {
        "description": detail.description,
        "flags": detail.flags,
        "subcommands": subcommands,
    }


def build_tree(
    *,
    runner: CommandRunner,
    path: CommandPath,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_workers: int = DEFAULT_MAX_WORKERS,
    strict: bool = True,
) -> CommandNode:
    """Recursively walk `path` and every subcommand it lists.

    Children appear in the order the parent's help listed them. The root must
    be invocable (its ProcessError propagates); any other node that fails
    degrades to a leaf carrying its one-line listing description.
    """
    detail = fetch_command_details(runner=runner, path=path, strict=True)
    visited: set[CommandPath] = {path}
    if max_workers > 1:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            return _build_node(
                runner=runner,
                path=path,
                detail=detail,
                visited=visited,
                max_depth=max_depth,
                strict=strict,
                executor=executor,
            )
    return _build_node(
        runner=runner,
        path=path,
        detail=detail,
        visited=visited,
        max_depth=max_depth,
        strict=strict,
        executor=None,
    )


def build_command_tree(
    *,
    runner: CommandRunner,
    tool: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_workers: int = DEFAULT_MAX_WORKERS,
    strict: bool = True,
) -> CommandTreeDocument:
    """Detect the version and walk the full command tree of `tool`."""
    version = detect_version(runner=runner, tool=tool)
    tree = build_tree(
        runner=runner,
        path=(tool,),
        max_depth=max_depth,
        max_workers=max_workers,
        strict=strict,
    )
    return {"version": version, "tree": tree}


def is_degraded_node(node: CommandNode) -> bool:
    """True when nothing at all was extracted for a node, usually a parse failure."""
    return not node["description"] and not node["flags"] and not node["subcommands"]


def degraded_paths(*, tree: CommandNode, root: str) -> list[str]:
    out: list[str] = []
    stack: list[tuple[CommandPath, CommandNode]] = [((root,), tree)]
    while stack:
        path, node = stack.pop()
        if is_degraded_node(node):
            out.append(_path_label(path))
        children = list(node["subcommands"].items())
        for token, child in reversed(children):
            stack.append(((*path, token), child))
    return out


def collect_warnings(*, document: CommandTreeDocument, root: str) -> list[str]:
    """Data-quality messages worth surfacing to whoever ran the build."""
    warnings: list[str] = []
    if document["version"] == UNKNOWN_VERSION:
        warnings.append(f"Could not detect a version for {root}")
    for label in degraded_paths(tree=document["tree"], root=root):
        warnings.append(f'Nothing could be extracted for "{label}"')

    stack: list[tuple[CommandPath, CommandNode]] = [((root,), document["tree"])]
    while stack:
        path, node = stack.pop()
        for alias in dangling_aliases(node["flags"]):
            warnings.append(
                f'"{_path_label(path)}" flag {alias} points at missing '
                f"{node['flags'][alias].get('aliasOf')!r}"
            )
        for token, child in reversed(list(node["subcommands"].items())):
            stack.append(((*path, token), child))
    return warnings


def _document_file_name(tool: str) -> str:
    """Use the executable's base name, sanitized for filesystem."""
    name = os.path.basename(tool.rstrip("/\\")) or tool
    safe = name.replace("\\", "_").replace(":", "_")
    safe = re.sub(r"\s+", "_", safe)
    return f"{safe}_command_tree.json"


def command_tree_path(*, tool: str) -> Path:
    return clitree_data_dir() / _document_file_name(tool)


def dump_command_tree(document: CommandTreeDocument) -> str:
    # No sort_keys: subcommand order is the order the tool listed them.
    return json.dumps(document, indent=2) + "\n"


def save_command_tree(*, document: CommandTreeDocument, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Atomic write: write to temp file then rename
    temp_path = path.with_suffix(f".tmp.{os.getpid()}")
    try:
        temp_path.write_text(dump_command_tree(document))
        temp_path.rename(path)  # Atomic on POSIX
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def load_command_tree(*, path: Path) -> CommandTreeDocument | None:
    """Load and validate a saved document; None if missing or not JSON."""
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return validate_command_tree(payload=payload)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Discover a CLI tool's command tree from its help output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="action")

    # build command
    build_p = subparsers.add_parser("build", help="Walk a tool and save its command tree")
    build_p.add_argument("tool", help="Tool name or path (e.g. avalanche, ./bin/tool)")
    build_p.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Where to write the document (default: data dir)",
    )
    build_p.add_argument(
        "--print",
        action="store_true",
        help="Print the document to stdout (also saves it)",
    )
    build_p.add_argument(
        "--max-depth",
        type=int,
        default=_max_depth(),
        help="Maximum subcommand depth to walk (default from config)",
    )
    build_p.add_argument(
        "--timeout-s",
        type=int,
        default=_setting_int(config_key="timeout_s", default=DEFAULT_TIMEOUT_S),
        help="Time budget for each help query",
    )
    build_p.add_argument(
        "--workers",
        type=int,
        default=_setting_int(config_key="max_workers", default=DEFAULT_MAX_WORKERS),
        help="Run sibling help queries in parallel",
    )
    build_p.add_argument(
        "--lenient",
        action="store_true",
        default=not _setting_bool(config_key="strict_walk", default=True),
        help="Keep cyclic or too-deep subcommands as leaves instead of failing",
    )

    # version command
    version_p = subparsers.add_parser("version", help="Print the detected tool version")
    version_p.add_argument("tool", help="Tool name or path")
    version_p.add_argument(
        "--timeout-s",
        type=int,
        default=_setting_int(config_key="timeout_s", default=DEFAULT_TIMEOUT_S),
    )

    # validate command
    validate_p = subparsers.add_parser("validate", help="Check a saved document")
    validate_p.add_argument("path", type=Path, help="Document to check")

    # schema command
    subparsers.add_parser("schema", help="Print the document JSON Schema")

    args = parser.parse_args(argv)

    if args.action is None:
        parser.print_usage(sys.stderr)
        return 2

    if args.action == "build":
        runner = SubprocessRunner(timeout_s=max(1, args.timeout_s))
        try:
            document = build_command_tree(
                runner=runner,
                tool=args.tool,
                max_depth=max(0, args.max_depth),
                max_workers=max(1, args.workers),
                strict=not args.lenient,
            )
        except ClitreeError as e:
            print(f"Failed to build the CLI command tree: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print("Interrupted; no document written", file=sys.stderr)
            return 130

        for message in collect_warnings(document=document, root=args.tool):
            _warn(message)

        output_path = args.output or command_tree_path(tool=args.tool)
        save_command_tree(document=document, path=output_path)
        if args.print:
            print(dump_command_tree(document), end="")
        print(
            f"Command tree for {args.tool} {document['version']} saved to {output_path}",
            file=sys.stderr,
        )
        return 0

    elif args.action == "version":
        runner = SubprocessRunner(timeout_s=max(1, args.timeout_s))
        print(detect_version(runner=runner, tool=args.tool))
        return 0

    elif args.action == "validate":
        try:
            document = load_command_tree(path=args.path)
        except ValueError as e:
            print(f"Invalid document: {e}", file=sys.stderr)
            return 1
        if document is None:
            print(f"No JSON document at {args.path}", file=sys.stderr)
            return 1
        suffix = "_command_tree.json"
        name = args.path.name
        root = name.removesuffix(suffix) if name.endswith(suffix) else args.path.stem
        for message in collect_warnings(document=document, root=root):
            _warn(message)
        return 0

    elif args.action == "schema":
        print(json.dumps(command_tree_json_schema(), indent=2))
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
