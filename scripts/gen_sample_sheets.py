#!/usr/bin/env python3
"""Sample sheet generator for manual testing and load checks.

Generates:
- a collections sheet in the import layout (row 1 header, row 2+ data):
  core columns, two rule triples and a handful of field columns
- optionally a specification sheet (SKU column plus one column per key)

Rows without a Collection ID are creates; a share of rows carry IDs so the
same file exercises the update path against a store that has them.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import numpy as np
import pandas as pd

COLLECTION_HEADER = [
    "Collection ID",
    "Title",
    "Description",
    "Sort Order",
    "Template Suffix",
    "Collection Type",
    "Rule Match",
    "Rule 1 - Column",
    "Rule 1 - Relation",
    "Rule 1 - Condition",
    "Rule 2 - Column",
    "Rule 2 - Relation",
    "Rule 2 - Condition",
]

FIELD_COLUMNS = ["subtitle", "priority", "featured", "launch", "related"]

SORT_ORDERS = ["BEST_SELLING", "ALPHA_ASC", "CREATED_DESC", "MANUAL", ""]
TAGS = ["summer", "winter", "sale", "new", "outlet", "eco"]
SPEC_KEYS = ["Color", "Material", "Weight (kg)", "Width (cm)", "Origin"]


def generate_collections(rows: int, existing_ratio: float = 0.3, seed: int = 42) -> pd.DataFrame:
    """Build a collections DataFrame in the import layout.

    Args:
        rows: number of data rows
        existing_ratio: share of rows that carry a Collection ID (updates)
        seed: random seed for reproducible data
    """
    rng = np.random.default_rng(seed)
    records = []
    for i in range(rows):
        has_id = rng.random() < existing_ratio
        rule_based = rng.random() < 0.4
        tag_a, tag_b = rng.choice(TAGS, 2, replace=False).tolist()
        related = [f"gid://shopify/Collection/{n}" for n in rng.integers(1, 5000, rng.integers(0, 3))]
        row = {
            "Collection ID": f"gid://shopify/Collection/{100000 + i}" if has_id else "",
            "Title": f"Collection {i + 1:05d}",
            "Description": f"<p>Sample collection {i + 1}</p>",
            "Sort Order": rng.choice(SORT_ORDERS),
            "Template Suffix": "",
            "Collection Type": "rule-based" if rule_based else "manual",
            "Rule Match": rng.choice(["Any", "All"]) if rule_based else "",
            "Rule 1 - Column": "TAG" if rule_based else "",
            "Rule 1 - Relation": "EQUALS" if rule_based else "",
            "Rule 1 - Condition": tag_a if rule_based else "",
            "Rule 2 - Column": "TAG" if rule_based else "",
            "Rule 2 - Relation": "EQUALS" if rule_based else "",
            "Rule 2 - Condition": tag_b if rule_based else "",
            "subtitle": f"{tag_a.title()} picks",
            "priority": int(rng.integers(1, 100)),
            "featured": bool(rng.random() < 0.2),
            "launch": (pd.Timestamp("2024-01-01") + pd.Timedelta(days=int(rng.integers(0, 365)))).date(),
            "related": json.dumps(related, separators=(",", ":")) if related else "",
        }
        records.append(row)
    return pd.DataFrame(records, columns=COLLECTION_HEADER + FIELD_COLUMNS)


def generate_specifications(rows: int, seed: int = 42) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    data: dict[str, list] = {"SKU": [f"SKU-{i + 1:06d}" for i in range(rows)]}
    data["Color"] = rng.choice(["Red", "Blue", "Black", "White", ""], rows).tolist()
    data["Material"] = rng.choice(["Cotton", "Wool", "Polyester", ""], rows).tolist()
    data["Weight (kg)"] = np.round(rng.uniform(0.1, 5.0, rows), 2).tolist()
    data["Width (cm)"] = rng.integers(10, 200, rows).tolist()
    data["Origin"] = rng.choice(["JP", "VN", "PT", "IT"], rows).tolist()
    return pd.DataFrame(data, columns=["SKU"] + SPEC_KEYS)


def write_sheet(df: pd.DataFrame, output_path: Path, sheet_name: str) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    print(f"Created {output_path} [{sheet_name}]: {len(df)} rows x {len(df.columns)} columns")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate sample collection / specification sheets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/collections.xlsx
  %(prog)s data/collections.xlsx --rows 2000 --existing-ratio 0.5
  %(prog)s data/collections.xlsx --specs data/specifications.xlsx --spec-rows 10000
        """,
    )
    parser.add_argument("output", type=Path, help="Collections .xlsx to write")
    parser.add_argument("--rows", type=int, default=200, help="Collection rows (default: 200)")
    parser.add_argument("--existing-ratio", type=float, default=0.3, help="Share of rows with a Collection ID")
    parser.add_argument("--specs", type=Path, help="Also write a specification sheet here")
    parser.add_argument("--spec-rows", type=int, default=1000, help="Specification rows (default: 1000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    if args.rows <= 0 or args.spec_rows <= 0:
        print("Error: row counts must be positive", file=sys.stderr)
        return 1
    if not 0.0 <= args.existing_ratio <= 1.0:
        print("Error: --existing-ratio must be between 0 and 1", file=sys.stderr)
        return 1

    write_sheet(generate_collections(args.rows, args.existing_ratio, args.seed), args.output, "Collections")
    if args.specs is not None:
        write_sheet(generate_specifications(args.spec_rows, args.seed), args.specs, "Specifications")
    return 0


if __name__ == "__main__":
    sys.exit(main())
