#!/usr/bin/env python3
import argparse
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd
from rich.console import Console
from rich.table import Table

# project root
sys.path.append(str(Path(__file__).resolve().parents[1]))
from apps.common.settings import load_settings
from services.engine import EngineConfig, WorkflowEngine
from services.export.gate import ExportFilters, ExportRecord, to_csv, to_jsonl
from services.storage.store import LocalJsonStore
from services.workflow.models import Actor, Role

console = Console()


def summarize(records: List[ExportRecord]) -> pd.DataFrame:
    df = pd.DataFrame([r.to_dict() for r in records])
    if df.empty:
        return df
    return (
        df.groupby("translator")["quality_score"]
        .agg(units="count", mean_score="mean")
        .reset_index()
        .sort_values("translator")
    )


def print_summary(summary: pd.DataFrame) -> None:
    table = Table(show_header=True)
    table.add_column("Translator")
    table.add_column("Units", justify="right")
    table.add_column("Mean score", justify="right")
    for row in summary.itertuples(index=False):
        table.add_row(str(row.translator), str(row.units), f"{row.mean_score:.2f}")
    console.print(table)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Export approved translation units as a dataset.")
    ap.add_argument("--config", default=None, help="Path to app.yaml (defaults to PACKETFLOW_CONFIG_PATH / config/app.yaml)")
    ap.add_argument("--store-dir", default=None, help="Override the store directory from config")
    ap.add_argument("--actor", default="admin", help="Admin user id recorded in the export log")
    ap.add_argument("--format", choices=["jsonl", "csv"], default="jsonl")
    ap.add_argument("--translator", default=None)
    ap.add_argument("--from-date", default=None, type=lambda s: pd.Timestamp(s).date())
    ap.add_argument("--to-date", default=None, type=lambda s: pd.Timestamp(s).date())
    ap.add_argument("--task-type", default=None)
    ap.add_argument("--out", required=True)
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    store_dir = args.store_dir or str(settings.store_dir)
    engine = WorkflowEngine(store=LocalJsonStore(root_dir=store_dir), config=EngineConfig.from_settings(settings))

    records = engine.export_approved(
        Actor(user_id=args.actor, role=Role.ADMIN),
        ExportFilters(
            translator_id=args.translator,
            from_date=args.from_date,
            to_date=args.to_date,
            task_type=args.task_type,
        ),
    )

    body = to_jsonl(records) if args.format == "jsonl" else to_csv(records)
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(body, encoding="utf-8")

    console.print(f"[green]Exported {len(records)} approved units → {out}[/green]")
    summary = summarize(records)
    if summary.empty:
        console.print("[yellow]No approved units matched the filters.[/yellow]")
    else:
        print_summary(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
