#!/usr/bin/env python3
"""
Extract the text between START/END marker comments.

A tagged block looks like:

  // [START mytag]
  var Bla = "bla"
  // [END mytag]

Example:
  python3 inbtw.py -tag mytag -f myfile.go
prints:
  var Bla = "bla"
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, Iterable, List, Optional, Set, TextIO

# Marker literals; the text before the prefix on a line is ignored.
START = "// [START "
END = "// [END "
END_TOKEN = "]"

NAME = "inbtw"

logger = logging.getLogger(__name__)


class InbtwError(Exception):
    pass


class UsageError(InbtwError):
    """Missing or unknown command-line arguments."""


class ExtractError(InbtwError):
    """Runtime failure while extracting from a source."""


class TagNotFoundError(ExtractError):
    def __init__(self, tag: str) -> None:
        super().__init__(f'tag "{tag}": not found')
        self.tag = tag


class DuplicateTagError(ExtractError):
    """A start marker for a tag that is still open."""

    def __init__(self, tag: str, line: int) -> None:
        super().__init__(f"tag {tag} (line {line}): duplicate")
        self.tag = tag
        self.line = line


def extract_tag_name(prefix: str, line: str) -> Optional[str]:
    """
    Return the tag name following `prefix` on `line`, or None.

    The name runs up to the next "]" and is trimmed of spaces and tabs only.
    A missing prefix or a missing "]" means the line carries no tag.
    """
    _, found, after = line.partition(prefix)
    if not found:
        return None
    name, closed, _ = after.partition(END_TOKEN)
    if not closed:
        return None
    return name.strip(" \t")


def _strip_newline(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def extract_tags(stream: Iterable[str]) -> Dict[str, str]:
    """
    Scan `stream` line by line and collect the text of every tag.

    Lines inside several open tags are captured by each of them. A tag closed
    and opened again keeps appending to the same entry. Tags never closed keep
    what they captured up to the end of the stream.

    Raises DuplicateTagError when a tag is opened while already open.
    """
    texts: Dict[str, str] = {}
    active: Set[str] = set()
    lineno = 0

    for raw in stream:
        line = _strip_newline(raw)
        lineno += 1

        name = extract_tag_name(START, line)
        if name is not None:
            if name in active:
                raise DuplicateTagError(name, lineno)
            active.add(name)
            logger.debug("line %d: open %r", lineno, name)
            continue

        name = extract_tag_name(END, line)
        if name is not None:
            if name in active:
                active.remove(name)
                logger.debug("line %d: close %r", lineno, name)
                continue
            # Stray end markers are kept as ordinary text.
            logger.debug("line %d: end marker for inactive tag %r", lineno, name)

        for tag in active:
            if not texts.get(tag):
                texts[tag] = line
            else:
                texts[tag] += "\n" + line

    logger.debug("scanned %d lines, %d tags, %d left open", lineno, len(texts), len(active))
    return texts


def _write_tags(texts: Dict[str, str], tag: str, out: TextIO) -> None:
    if not tag:
        for name, text in texts.items():
            out.write(f"-- {name} --\n{text}\n")
        return

    if tag not in texts:
        raise TagNotFoundError(tag)
    out.write(texts[tag])


def extract(source: str, tag: str, out: TextIO) -> None:
    """Extract from one source ("-" for stdin) and write the result to `out`."""
    if not source:
        raise UsageError("no input file given")

    if source == "-":
        try:
            texts = extract_tags(sys.stdin)
        except (OSError, UnicodeDecodeError) as e:
            raise ExtractError(f"reading stdin: {e}") from e
    else:
        try:
            f = open(source, "r", encoding="utf-8")
        except OSError as e:
            raise ExtractError(f"opening file {source}: {e}") from e
        with f:
            try:
                texts = extract_tags(f)
            except (OSError, UnicodeDecodeError) as e:
                raise ExtractError(f"reading file {source}: {e}") from e

    _write_tags(texts, tag, out)


def run(tag: str, sources: str, out: Optional[TextIO] = None) -> None:
    out = out if out is not None else sys.stdout
    for source in sources.split(","):
        extract(source, tag, out)


def _build_parser() -> argparse.ArgumentParser:
    description = f"""{NAME} extracts the text between tags.

A tag is defined by "{START}<name>{END_TOKEN}" and "{END}<name>{END_TOKEN}".

Example for a file containing:

    // [START mytag]
    var Bla = "bla"
    // [END mytag]

executing:

    > {NAME} -tag mytag -f myfile.go

will yield:

    var Bla = "bla"
"""
    parser = argparse.ArgumentParser(
        prog=NAME,
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-tag", "--tag", default="", help="Tag containing the text to extract (default: all tags)")
    parser.add_argument(
        "-f",
        "--file",
        default="",
        help="File(s) to parse, multiple files separated by ',', '-' for stdin",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log scan details to stderr")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        run(args.tag, args.file)
    except UsageError:
        parser.print_help()
        return 2
    except InbtwError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


def console_main() -> None:
    try:
        raise SystemExit(main())
    except BrokenPipeError:
        # Allow piping to head/grep without stack traces.
        raise SystemExit(0)


if __name__ == "__main__":
    console_main()
