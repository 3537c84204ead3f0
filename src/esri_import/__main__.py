"""Command-line import of a GeoJSON or ESRI JSON file.

    python -m esri_import parcels.json --map NAME=name --map ZONING=landuse

Prints the import report as JSON and exits non-zero if any feature failed.
"""

from __future__ import annotations

import argparse
import json
import sys

from loguru import logger

from esri_import.driver import ImportDriver
from esri_import.field_mapper import DEFAULT_SOURCE_ID_FIELD, FieldMapper
from esri_import.host import MemoryHost
from esri_import.layer import ImportLayer


def _parse_mapping(pairs: list[str]) -> dict[str, str]:
    mapping = {}
    for pair in pairs:
        source_key, sep, tag_key = pair.partition("=")
        if not sep or not source_key:
            raise argparse.ArgumentTypeError(f"Expected FIELD=tag, got {pair!r}")
        mapping[source_key] = tag_key
    return mapping


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import feature service data as map entities")
    parser.add_argument("path", help="GeoJSON or ESRI JSON file")
    parser.add_argument("--map", action="append", default=[], metavar="FIELD=tag",
                        help="Rename a source field to a tag (repeatable)")
    parser.add_argument("--id-field", default=DEFAULT_SOURCE_ID_FIELD,
                        help="Property holding the source object id")
    parser.add_argument("--entities", action="store_true",
                        help="Also print the created entities")
    args = parser.parse_args(argv)

    try:
        mapping = _parse_mapping(args.map)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    layer = ImportLayer()
    try:
        collection = layer.load_file(args.path)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot load {args.path}: {e}")
        return 2

    host = MemoryHost()
    driver = ImportDriver(host, FieldMapper(mapping), source_id_field=args.id_field)
    report = driver.import_feature_collection(collection)

    out = report.to_dict()
    if args.entities:
        out["entities"] = [e.to_dict() for e in host.entities()]
    print(json.dumps(out, indent=2, default=str))
    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
