"""
CLI entry point: rppkit check | fmt | tree | plugins | new
"""

import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from .config import get_settings
from .errors import EncodingError, ParseError, describe_parse_error
from .node import Node
from .objects import Project, Track, Vst
from .parser import parse
from .specialize import specialize

logger = logging.getLogger(__name__)


def _read(path) -> str:
    return Path(path).read_text(encoding="utf-8")


def _load(path, specialized=False):
    """Parse ``path``; parse errors become a ClickException with source context."""
    text = _read(path)
    try:
        tree = parse(text)
    except ParseError as e:
        raise click.ClickException(
            f"{path}: cannot parse\n{describe_parse_error(text, e)}"
        ) from e
    return text, specialize(tree) if specialized else tree


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def cli(verbose):
    """Read and write REAPER .RPP project files."""
    load_dotenv()
    get_settings.cache_clear()
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def check(file):
    """Exit non-zero unless FILE re-serializes to identical text."""
    text, tree = _load(file, specialized=True)
    out = tree.dump()
    original = text.replace("\r\n", "\n").strip("\n")
    if out == original:
        print(f"{file}: ok ({sum(1 for _ in tree.walk())} blocks)")
        return

    a, b = original.split("\n"), out.split("\n")
    for n, (x, y) in enumerate(zip(a, b), start=1):
        if x != y:
            print(f"{file}: line {n} differs")
            print(f"  read:  {x}")
            print(f"  wrote: {y}")
            break
    else:
        print(f"{file}: {len(a)} lines read, {len(b)} written")
    sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", default=None, help="Write here instead of stdout.")
def fmt(file, output):
    """Print FILE in canonical form."""
    _, tree = _load(file, specialized=True)
    try:
        out = tree.dump()
    except EncodingError as e:
        raise click.ClickException(f"{file}: {e}") from e
    if output is None:
        print(out)
    else:
        Path(output).write_text(out + "\n", encoding="utf-8")
        print(f"Wrote {output}")


def _label(node: Node) -> str:
    params = " ".join(str(p) for p in node.params[:3])
    if len(node.params) > 3:
        params += " ..."
    label = f"[bold]{escape(node.token)}[/bold] {escape(params)}".rstrip()
    if node.binary_chunks:
        label += f" [dim]({len(node.binary_chunks)} chunks)[/dim]"
    return label


def _add_branches(branch, node: Node, depth, max_depth):
    if max_depth is not None and depth >= max_depth:
        return
    children = [c for c in node.children if isinstance(c, Node)]
    if isinstance(node, Vst):
        children += node.owned_blocks
    for child in children:
        _add_branches(branch.add(_label(child)), child, depth + 1, max_depth)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--depth", type=int, default=None, help="Stop after this many levels.")
def tree(file, depth):
    """Show the block structure of FILE."""
    _, root = _load(file, specialized=True)
    view = Tree(_label(root))
    _add_branches(view, root, 0, depth)
    Console().print(view)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def plugins(file):
    """List the plugins in FILE with their decoded headers."""
    _, root = _load(file, specialized=True)
    found = [n for n in root.walk() if isinstance(n, Vst)]
    if not found:
        print("No plugins.")
        return
    for vst in found:
        name = vst.params[0] if vst.params else "?"
        try:
            h = vst.header
        except EncodingError as e:
            logger.warning("%s: %s", name, e)
            print(f"{vst.token} {name}: header not decodable")
            continue
        print(f"{vst.token} {name}")
        print(f"  id: {h.id_ascii!r} ({h.plugin_id}, 0x{h.id_hex})  kind: {h.kind}")
        print(f"  in: {h.input_channels()}  out: {h.output_channels()}")
        print(f"  state: {h.state_size} bytes")


@cli.command()
@click.argument("output", type=click.Path(dir_okay=False))
@click.option("--track", "tracks", multiple=True, help="Add a track with this name.")
def new(output, tracks):
    """Write a new project built from the template."""
    project = Project.empty()
    for name in tracks:
        project.add_track(Track.new(name))
    Path(output).write_text(project.dump() + "\n", encoding="utf-8")
    print(f"Project -> {output} ({len(project.tracks)} tracks)")
