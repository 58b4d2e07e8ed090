# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""statree CLI - replay a local chunk file into a tree and inspect it.

Statistics are decoded with the plaintext reference schemes, so this is for
inspecting test data and debugging tree shape, not for serving clients.
"""

import dataclasses
import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from statree import __version__
from statree.config import (
    STATREE_DIR_NAME,
    VALID_LOG_LEVELS,
    VALID_OUTPUT_FORMATS,
    ConfigLoadError,
    ConfigValidationError,
    MetadataConfiguration,
    StatreeConfig,
    generate_config_template_string,
    get_config,
    get_global_config_path,
    get_project_config_path,
    load_stream_file,
)
from statree.errors import StatreeError, ValidationError
from statree.schemas import ChunkLine, decode_record
from statree.schemes import PLAINTEXT, STAT_KINDS
from statree.tree import AggregationTree
from statree.tree.model import InternalNode, LeafNode

logger = logging.getLogger(__name__)

console = Console()

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _plaintext_view(config: MetadataConfiguration) -> MetadataConfiguration:
    """Rebind every decodable statistic to the plaintext codecs."""
    for stat in STAT_KINDS:
        algorithm = config.algorithm_for(stat)
        if config.is_enabled(stat) and algorithm != PLAINTEXT:
            logger.warning("Decoding %s as plaintext instead of '%s'", stat, algorithm)
    return dataclasses.replace(
        config, algorithms={**config.algorithms, **{s: PLAINTEXT for s in STAT_KINDS}}
    )


def _load_tree(ctx: click.Context, stream: str, chunks: str, fanout: int | None) -> AggregationTree:
    """Build a tree from a stream descriptor and a JSON-lines chunk file."""
    settings: StatreeConfig = ctx.obj["config"]
    config, file_fanout = load_stream_file(Path(stream))
    config = _plaintext_view(config)
    k = next(v for v in (fanout, file_fanout, settings.defaults.fanout) if v is not None)
    tree = AggregationTree(config, k)

    try:
        f = open(chunks, "rb")
    except OSError as e:
        raise ValidationError(f"Error reading {chunks}: {e}") from e

    with f:
        for lineno, raw in enumerate(f, start=1):
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ValidationError(f"{chunks}:{lineno}: not valid UTF-8 ({e})") from e
            if not line.strip():
                continue
            try:
                entry = ChunkLine.model_validate_json(line)
            except ValueError as e:
                raise ValidationError(f"{chunks}:{lineno}: {e}") from e
            record = decode_record(entry.metadata, config)
            tree.insert(entry.payload.encode(), record.start, record.end, record)

    logger.info("Replayed %d chunks from %s (k=%d)", tree.size, chunks, k)
    return tree


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True)
    raise SystemExit(1)


def _add_rich_nodes(branch: Tree, node, depth: int | None) -> None:
    if isinstance(node, LeafNode):
        branch.add(f"[green]chunk[/green] [{node.start}, {node.end}]")
        return
    label = f"[bold]node[/bold] [{node.start}, {node.end}] ({len(node.children)} children)"
    sub = branch.add(label)
    if depth is not None and depth <= 0:
        return
    for child in node.children:
        _add_rich_nodes(sub, child, None if depth is None else depth - 1)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (default from config: WARNING)",
)
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(VALID_OUTPUT_FORMATS),
    default=None,
    help="Output format: json (default) or text",
)
@click.option("--home", envvar="STATREE_HOME", help=f"Override project {STATREE_DIR_NAME} directory")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, output_format: str | None, home: str | None) -> None:
    """statree - inspect append-only aggregation trees."""
    ctx.ensure_object(dict)
    statree_home = Path(home) if home else Path.cwd() / STATREE_DIR_NAME

    try:
        config = get_config(statree_home)
    except (ConfigLoadError, ConfigValidationError) as e:
        _fail(str(e))

    level = (log_level or config.defaults.log_level).upper()
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger("statree").setLevel(level)

    ctx.obj["config"] = config
    ctx.obj["statree_home"] = statree_home
    ctx.obj["output_format"] = output_format or config.defaults.output_format


@main.command()
def version() -> None:
    """Show version."""
    console.print(f"statree {__version__}")


@main.group()
def config() -> None:
    """Show or create configuration."""
    pass


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the merged configuration."""
    print(json.dumps(ctx.obj["config"].to_dict(), indent=2))


@config.command("init")
@click.option("--global", "is_global", is_flag=True, help="Create global config at ~/.statree_config.json")
@click.option("--force", is_flag=True, help="Overwrite existing config file")
@click.pass_context
def config_init(ctx: click.Context, is_global: bool, force: bool) -> None:
    """Write a config template."""
    if is_global:
        path = get_global_config_path()
    else:
        path = get_project_config_path(ctx.obj["statree_home"])

    if path.exists() and not force:
        _fail(f"Config already exists at {path} (use --force to overwrite)")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_config_template_string() + "\n")
    console.print(f"[green]Created config at[/green] {path}")


def _replay_options(f):
    f = click.option("--fanout", "-k", type=int, default=None, help="Children per node (overrides config)")(f)
    f = click.argument("chunks", type=click.Path(exists=True, dir_okay=False))(f)
    f = click.argument("stream", type=click.Path(exists=True, dir_okay=False))(f)
    return f


@main.command()
@_replay_options
@click.option("--from", "start", type=int, required=True, help="Range start (inclusive)")
@click.option("--to", "end", type=int, required=True, help="Range end (inclusive)")
@click.pass_context
def chunks(ctx: click.Context, stream: str, chunks: str, fanout: int | None, start: int, end: int) -> None:
    """List payloads of chunks overlapping [FROM, TO]."""
    try:
        tree = _load_tree(ctx, stream, chunks, fanout)
        payloads = tree.query_chunks(start, end)
    except (StatreeError, ConfigLoadError, ConfigValidationError) as e:
        _fail(str(e))

    decoded = [p.decode("utf-8", errors="replace") for p in payloads]
    if ctx.obj["output_format"] == "json":
        print(json.dumps(decoded))
    else:
        for payload in decoded:
            console.print(payload, markup=False, highlight=False)


@main.command()
@_replay_options
@click.option("--from", "start", type=int, required=True, help="Range start (inclusive)")
@click.option("--to", "end", type=int, required=True, help="Range end (inclusive)")
@click.pass_context
def stats(ctx: click.Context, stream: str, chunks: str, fanout: int | None, start: int, end: int) -> None:
    """Show consolidated statistics over [FROM, TO]."""
    try:
        tree = _load_tree(ctx, stream, chunks, fanout)
        record = tree.query_aggregate(start, end)
    except (StatreeError, ConfigLoadError, ConfigValidationError) as e:
        _fail(str(e))

    data = record.to_dict(tree.config)
    if ctx.obj["output_format"] == "json":
        print(json.dumps(data))
        return

    table = Table(title=f"Statistics [{start}, {end}]")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, str(value))
    console.print(table)


@main.command()
@_replay_options
@click.option("--depth", type=int, default=None, help="Maximum depth to render")
@click.pass_context
def shape(ctx: click.Context, stream: str, chunks: str, fanout: int | None, depth: int | None) -> None:
    """Show the tree's node intervals and child counts."""
    try:
        tree = _load_tree(ctx, stream, chunks, fanout)
        tree.check_invariants()
    except (StatreeError, ConfigLoadError, ConfigValidationError) as e:
        _fail(str(e))

    if ctx.obj["output_format"] == "json":
        print(json.dumps(tree.to_dict()))
        return

    root = tree.root
    view = Tree(f"[bold]k={tree.k}[/bold] size={tree.size} height={tree.height}")
    if isinstance(root, InternalNode):
        _add_rich_nodes(view, root, depth)
    console.print(view)


if __name__ == "__main__":
    main()
