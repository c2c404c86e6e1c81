"""Print manifest entries for the plugins a POM bundles.

Every ``provided``-scope dependency of type ``hpi`` becomes a
``require("artifactId", "version"),`` line ready to paste into the install
mode tables.
"""

from __future__ import annotations

import argparse
import sys
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, TextIO


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return None


def iter_manifest_plugins(pom: Path) -> Iterator[tuple[str, str | None]]:
    """Yield ``(artifact_id, version)`` for each bundled plugin in ``pom``."""

    root = ET.parse(pom).getroot()
    for element in root.iter():
        if _local_name(element.tag) != "dependency":
            continue
        if _child_text(element, "scope") != "provided" or _child_text(element, "type") != "hpi":
            continue
        artifact_id = _child_text(element, "artifactId")
        if not artifact_id:
            continue
        yield artifact_id, _child_text(element, "version") or None


def format_entry(artifact_id: str, version: str | None) -> str:
    if version:
        return f'require("{artifact_id}", "{version}"),'
    return f'require("{artifact_id}"),'


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("pom", type=Path, help="Path to the pom.xml listing the bundled plugins.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    args = parse_args(argv)
    out = out or sys.stdout
    try:
        plugins = list(iter_manifest_plugins(args.pom))
    except (OSError, ET.ParseError) as exc:
        print(f"Cannot read {args.pom}: {exc}", file=sys.stderr)
        return 1
    for artifact_id, version in plugins:
        print(format_entry(artifact_id, version), file=out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
