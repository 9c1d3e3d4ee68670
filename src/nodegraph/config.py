"""NGConfig: project-local config for a nodegraph database.

Default layout (all relative to the project root):

    nodegraph.toml        # project config (git-tracked)
    .env                  # optional: NODEGRAPH_DB=/path/to/graph.db
    .nodegraph/
        graph.db          # SQLite database
        .gitignore        # auto-written: ignores the database files

nodegraph.toml example:

    [graph]
    name = "my-notes"
    # db_path = ".nodegraph/graph.db"   # default

    [mentions]
    source = "user"
    explanation = "Referenced via @ mention"

    [dimensions]
    seed = ["research", "ideas", "projects", "memory", "preferences"]

    [logging]
    level = "WARNING"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from nodegraph.mentions import DEFAULT_EXPLANATION, DEFAULT_SOURCE

_CONFIG_FILENAME = "nodegraph.toml"
_DEFAULT_DB_PATH = ".nodegraph/graph.db"
_GITIGNORE_CONTENT = "*.db\n*.db-wal\n*.db-shm\n"
_DB_ENV_VAR = "NODEGRAPH_DB"

DEFAULT_SEED_DIMENSIONS = ["research", "ideas", "projects", "memory", "preferences"]


@dataclass
class MentionsConfig:
    source: str = DEFAULT_SOURCE
    explanation: str = DEFAULT_EXPLANATION


@dataclass
class DimensionsConfig:
    seed: list[str] = field(default_factory=lambda: list(DEFAULT_SEED_DIMENSIONS))


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class NGConfig:
    """Resolved configuration for a nodegraph project."""

    root: Path                      # directory that contains nodegraph.toml
    name: str = ""
    db_path: Path = field(default_factory=lambda: Path(_DEFAULT_DB_PATH))
    mentions: MentionsConfig = field(default_factory=MentionsConfig)
    dimensions: DimensionsConfig = field(default_factory=DimensionsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_path(self) -> Path:
        return self.root / _CONFIG_FILENAME

    def ensure_dirs(self) -> None:
        """Create the database directory and its .gitignore."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        gitignore = self.db_path.parent / ".gitignore"
        if self.db_path.parent != self.root and not gitignore.exists():
            gitignore.write_text(_GITIGNORE_CONTENT)


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file (no external dependency)."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def load_config(root: Path | str | None = None) -> NGConfig:
    """Load nodegraph.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    graph_section = raw.get("graph", {})
    mentions_section = raw.get("mentions", {})
    dims_section = raw.get("dimensions", {})
    log_section = raw.get("logging", {})

    # Process environment wins over .env, which wins over nodegraph.toml
    env = _load_env(root_path)
    db_rel = (
        os.environ.get(_DB_ENV_VAR)
        or env.get(_DB_ENV_VAR)
        or str(graph_section.get("db_path", _DEFAULT_DB_PATH))
    )
    db_path = Path(db_rel).expanduser()
    if not db_path.is_absolute():
        db_path = root_path / db_path

    seed = dims_section.get("seed", list(DEFAULT_SEED_DIMENSIONS))
    if not isinstance(seed, list) or not all(isinstance(s, str) for s in seed):
        msg = f"[dimensions] seed must be a list of strings in {config_path}"
        raise ValueError(msg)

    return NGConfig(
        root=root_path,
        name=graph_section.get("name", root_path.name),
        db_path=db_path,
        mentions=MentionsConfig(
            source=str(mentions_section.get("source", DEFAULT_SOURCE)),
            explanation=str(mentions_section.get("explanation", DEFAULT_EXPLANATION)),
        ),
        dimensions=DimensionsConfig(seed=[s.strip() for s in seed if s.strip()]),
        logging=LoggingConfig(level=str(log_section.get("level", "WARNING")).upper()),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for nodegraph.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default nodegraph.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"nodegraph.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[graph]
name = "{project_name}"
# db_path = ".nodegraph/graph.db"   # default; NODEGRAPH_DB in env or .env overrides

# Edges created from [NODE:id:"title"] tokens in node content
# [mentions]
# source = "user"
# explanation = "Referenced via @ mention"

# Priority dimensions created with a new database
# [dimensions]
# seed = ["research", "ideas", "projects", "memory", "preferences"]

# [logging]
# level = "WARNING"   # -v / -vv on the command line raise it to INFO / DEBUG
"""
    config_path.write_text(content)
    return config_path
