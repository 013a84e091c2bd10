"""Interactive describe shell over catalog metadata readers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory

from ..config import Config, DataSourceConfig, load_config
from ..metadata.errors import MetadataError
from ..output import RenderOptions
from ..readers import DatabaseReader, DuckDBReader, create_reader
from ..utils.logging import get_datasource_logger, setup_logging
from ..writer import Writer, WriterConfig

# default number of most common values shown by \ss+
DEFAULT_TOP_N = 10

HELP_TEXT = """\
Informational
  \\l[+]   [PATTERN]      list databases
  \\d[S+]                 list schemas
  \\d[S+]  NAME           describe table, view, sequence, or index
  \\dn[S+] [PATTERN]      list schemas
  \\dt[S+] [PATTERN]      list tables (\\dv views, \\ds sequences, \\dm
                         materialized views; combine as in \\dtv)
  \\di[S+] [PATTERN]      list indexes
  \\df[antwp][S+] [PATTERN]
                         list [only agg/normal/trigger/window/procedure] functions
  \\dp[S]  [PATTERN]      list table, view, and sequence access privileges
  \\ss[+]  PATTERN [K]    show column statistics, K most common values with +
General
  \\?                     show this help
  \\q                     quit"""

# errors printed as "error: ..." without aborting the loop
REPORTED_ERRORS = (MetadataError, ConnectionError)

_COMMAND = re.compile(r"^\\(?P<name>[a-z?]+)(?P<modifiers>[S+]*)$")


class MetaCommandError(ValueError):
    """Input that is not a known describe command."""


@dataclass
class MetaCommand:
    """A parsed backslash command."""

    action: str
    types: str = ""
    pattern: str = ""
    verbose: bool = False
    show_system: bool = False
    k: int = 0


def parse_meta_command(line: str) -> MetaCommand:
    """Parse one line of REPL input into a command.

    Raises:
        MetaCommandError: If the line is not a supported backslash command
    """
    text = line.strip()
    if text.lower() in ("quit", "exit"):
        return MetaCommand("quit")
    if not text.startswith("\\"):
        raise MetaCommandError(
            "only backslash describe commands are supported, try \\? for help"
        )
    head, _, rest = text.partition(" ")
    args = rest.split()
    match = _COMMAND.match(head)
    if match is None:
        raise MetaCommandError(f"invalid command {head}, try \\? for help")

    name = match.group("name")
    modifiers = match.group("modifiers")
    verbose = "+" in modifiers
    show_system = "S" in modifiers
    pattern = args[0] if args else ""

    if name == "q":
        return MetaCommand("quit")
    if name == "?":
        return MetaCommand("help")
    if name == "l":
        return MetaCommand("list_dbs", pattern=pattern, verbose=verbose)
    if name == "ss":
        return _parse_stats(args, verbose)
    if name == "d":
        action = "describe" if pattern else "schemas"
        return MetaCommand(action, pattern=pattern, verbose=verbose, show_system=show_system)
    if name == "dn":
        return MetaCommand("schemas", pattern=pattern, verbose=verbose, show_system=show_system)
    if name == "di":
        return MetaCommand("indexes", pattern=pattern, verbose=verbose, show_system=show_system)
    if name == "dp":
        return MetaCommand("privileges", pattern=pattern, show_system=show_system)
    if name.startswith("df") and set(name[2:]) <= set("antwp"):
        return MetaCommand(
            "functions",
            types=name[2:],
            pattern=pattern,
            verbose=verbose,
            show_system=show_system,
        )
    if len(name) > 1 and name.startswith("d") and set(name[1:]) <= set("tvsm"):
        return MetaCommand(
            "tables",
            types=name[1:],
            pattern=pattern,
            verbose=verbose,
            show_system=show_system,
        )
    raise MetaCommandError(f"invalid command {head}, try \\? for help")


def _parse_stats(args, verbose: bool) -> MetaCommand:
    if not args:
        raise MetaCommandError("\\ss requires a table pattern")
    k = DEFAULT_TOP_N
    if len(args) > 1:
        try:
            k = int(args[1])
        except ValueError as e:
            raise MetaCommandError(f"invalid number of common values: {args[1]}") from e
    return MetaCommand("stats", pattern=args[0], verbose=verbose, k=k)


class MetaRepl:
    """Interactive loop dispatching describe commands to a Writer."""

    def __init__(self, writer: Writer, prompt: str = "dbmeta> "):
        self.writer = writer
        self.prompt = prompt
        self.session: Optional[PromptSession] = None

    def _create_session(self) -> PromptSession:
        """Create prompt session backed by persistent history."""
        history_file = self._history_path()
        history = FileHistory(str(history_file))
        auto_suggest = AutoSuggestFromHistory()
        return PromptSession(history=history, auto_suggest=auto_suggest)

    def _history_path(self) -> Path:
        history_path = Path(".dbmeta_history")
        if not history_path.exists():
            history_path.touch()
        return history_path

    def run(self) -> None:
        self.session = self._create_session()
        while True:
            line, should_continue = self._read_line()
            if not should_continue:
                break
            if line is None or not line.strip():
                continue
            if not self.execute(line):
                break

    def _read_line(self) -> Tuple[Optional[str], bool]:
        try:
            return self.session.prompt(self.prompt), True
        except EOFError:
            click.echo("")
            return None, False
        except KeyboardInterrupt:
            click.echo("")
            return None, True

    def execute(self, line: str) -> bool:
        """Run one input line; returns False when the loop should stop."""
        try:
            command = parse_meta_command(line)
        except MetaCommandError as exc:
            self.writer.emit(f"error: {exc}")
            return True
        if command.action == "quit":
            return False
        try:
            self.dispatch(command)
        except REPORTED_ERRORS as exc:
            self.writer.emit(f"error: {exc}")
        except Exception as exc:
            self.writer.emit(f"unexpected error: {exc}")
        return True

    def dispatch(self, command: MetaCommand) -> None:
        w = self.writer
        action = command.action
        if action == "help":
            w.emit(HELP_TEXT)
        elif action == "list_dbs":
            w.list_all_dbs(command.pattern, command.verbose)
        elif action == "schemas":
            w.list_schemas(command.pattern, command.verbose, command.show_system)
        elif action == "describe":
            w.describe_table_details(command.pattern, command.verbose, command.show_system)
        elif action == "tables":
            w.list_tables(command.types, command.pattern, command.verbose, command.show_system)
        elif action == "indexes":
            w.list_indexes(command.pattern, command.verbose, command.show_system)
        elif action == "functions":
            w.describe_functions(
                command.types, command.pattern, command.verbose, command.show_system
            )
        elif action == "privileges":
            w.list_privilege_summaries(command.pattern, command.show_system)
        elif action == "stats":
            w.show_stats("", command.pattern, command.verbose, command.k)
        else:
            raise MetaCommandError(f"unknown action {action}")


def build_writer(reader: DatabaseReader, config: Config, emit=click.echo) -> Writer:
    """Create a Writer for ``reader`` honoring the describe and output settings."""
    describe = config.describe
    writer_config = WriterConfig()
    writer_config.table_types.update(describe.table_types)
    writer_config.function_types.update(describe.function_types)
    if describe.system_schemas:
        writer_config.system_schemas = set(describe.system_schemas)
    else:
        writer_config.system_schemas = reader.default_system_schemas()
    render = RenderOptions(
        footer=config.output.footer,
        null_display=config.output.null_display,
        border=config.output.border,
    )
    return Writer(reader, emit, config=writer_config, render=render)


def _load_config_bundle(config_path: Optional[str]) -> Tuple[Config, Optional[str]]:
    if config_path:
        return load_config(config_path), None
    note = "Using in-memory DuckDB data source with demo tables."
    return _build_default_config(), note


def _build_default_config() -> Config:
    config = Config()
    ds_config = DataSourceConfig(
        name="duckdb_mem",
        type="duckdb",
        config={"path": ":memory:", "read_only": False},
    )
    config.datasources[ds_config.name] = ds_config
    return config


def _seed_demo_data(reader: DuckDBReader) -> None:
    connection = reader.connection
    if connection is None:
        return
    connection.execute("CREATE SEQUENCE IF NOT EXISTS demo_user_ids START 100")
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS demo_cities (
            name VARCHAR PRIMARY KEY,
            state VARCHAR NOT NULL
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS demo_users (
            id INTEGER PRIMARY KEY,
            name VARCHAR NOT NULL,
            age INTEGER CHECK (age >= 0),
            city VARCHAR REFERENCES demo_cities (name)
        )
        """
    )
    connection.execute("CREATE INDEX IF NOT EXISTS demo_users_age_idx ON demo_users (age)")
    connection.execute(
        "CREATE OR REPLACE VIEW demo_adults AS SELECT * FROM demo_users WHERE age >= 30"
    )
    connection.execute("CREATE OR REPLACE MACRO demo_decade(age) AS age // 10 * 10")
    connection.execute("DELETE FROM demo_users")
    connection.execute("DELETE FROM demo_cities")
    connection.execute(
        """
        INSERT INTO demo_cities VALUES
        ('New York', 'NY'), ('Boston', 'MA'), ('Austin', 'TX'),
        ('Chicago', 'IL'), ('Seattle', 'WA')
        """
    )
    connection.execute(
        """
        INSERT INTO demo_users VALUES
        (1, 'Alice', 30, 'New York'),
        (2, 'Bob', 34, 'Boston'),
        (3, 'Carlos', 28, 'Austin'),
        (4, 'Diana', 41, 'Chicago'),
        (5, 'Eve', 25, 'Seattle')
        """
    )


@click.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    help="Path to YAML config file. Defaults to an in-memory DuckDB demo.",
)
@click.option(
    "-s",
    "--datasource",
    "datasource",
    default=None,
    help="Data source to describe. Defaults to the first configured one.",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured logging level.",
)
def cli(config_path: Optional[str], datasource: Optional[str], log_level: Optional[str]) -> None:
    """Entry point for the dbmeta CLI."""
    config, note = _load_config_bundle(config_path)
    setup_logging(
        level=log_level or config.logging.level,
        structured=config.logging.structured,
        log_file=config.logging.file,
    )
    try:
        ds_config = config.datasource(datasource)
    except KeyError as exc:
        raise click.UsageError(str(exc.args[0])) from exc

    reader = create_reader(ds_config)
    log = get_datasource_logger(__name__, ds_config.name)
    try:
        reader.connect()
    except ConnectionError as exc:
        raise click.ClickException(str(exc)) from exc
    log.info("ready")
    try:
        if note:
            _seed_demo_data(reader)
            click.echo(note)
        click.echo(f"Connected to {ds_config.name} ({reader.driver}). Type \\? for help, \\q to exit.")
        MetaRepl(build_writer(reader, config), prompt=f"{ds_config.name}> ").run()
    finally:
        reader.disconnect()
