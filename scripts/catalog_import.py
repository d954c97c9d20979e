from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path
from typing import Any

from sugvoyage.catalog.loader import load_spots
from sugvoyage.catalog.merge import merge_spots
from sugvoyage.core.env import resolve_project_path


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")


def import_rows_from_csv(path: Path, *, lat_field: str, lon_field: str) -> list[dict[str, Any]]:
    out = []
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        for row in csv.DictReader(f):
            row = {k: v for k, v in row.items() if k and v not in (None, "")}
            if lat_field in row:
                row["latitude"] = row.pop(lat_field)
            if lon_field in row:
                row["longitude"] = row.pop(lon_field)
            out.append(row)
    return out


def import_rows_from_json(path: Path) -> list[dict[str, Any]]:
    payload = _read_json(path)
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)]
    raise ValueError("Unsupported JSON shape: expected an array or an {\"data\": [...]} envelope.")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Import/merge spots from a local CSV/JSON export (offline).")
    p.add_argument("--catalog", type=str, default="data/catalogs/spots.json")
    p.add_argument("--in-csv", type=str, default=None)
    p.add_argument("--in-json", type=str, default=None)
    p.add_argument("--merge", choices=["keep-existing", "overwrite"], default="keep-existing")
    p.add_argument("--lat-field", type=str, default="latitude")
    p.add_argument("--lon-field", type=str, default="longitude")
    p.add_argument(
        "--dedupe-radius-m",
        type=float,
        default=40.0,
        help="Treat incoming rows as duplicates if within this radius and name matches (0 disables).",
    )
    args = p.parse_args(argv)

    if bool(args.in_csv) == bool(args.in_json):
        raise SystemExit("Provide exactly one of --in-csv or --in-json.")

    catalog_path = resolve_project_path(args.catalog)
    existing = load_spots(catalog_path) if catalog_path.exists() else []
    rows = (
        import_rows_from_csv(resolve_project_path(args.in_csv), lat_field=args.lat_field, lon_field=args.lon_field)
        if args.in_csv
        else import_rows_from_json(resolve_project_path(args.in_json))
    )

    merged, stats = merge_spots(existing, rows, mode=args.merge, dedupe_radius_m=float(args.dedupe_radius_m))
    _write_json(catalog_path, [s.model_dump(mode="json") for s in merged])

    print("Wrote catalog:", catalog_path)
    print("Imported rows:", len(rows))
    print("Added:", stats.added, "Updated:", stats.updated, "Skipped:", stats.skipped, "Bad:", stats.bad)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
