# pp_recalc/report.py
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, List

import pandas as pd

from . import config
from .pipeline import PPResults, parse_variant, run_recalculation
from ._singletons import get_artifact_store, get_engines, get_ranking_client

RESULT_COLUMNS = [
    "player",
    "beatmap_id",
    "original_pp",
    "recalculated_pp",
    "difference",
    "stars",
    "mods",
    "version",
]

# ---------- flatten ----------

def results_to_frame(results: PPResults) -> pd.DataFrame:
    """
    One row per recalculated play. Players keep the pipeline's join order,
    plays keep upstream order within a player. Players with no plays
    contribute no rows.
    """
    rows: List[Dict] = []
    for player, plays in results.items():
        for res in plays:
            rows.append({"player": player, **res.model_dump()})
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)

# ---------- summary ----------

def summarize_by_player(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Per-player totals, sorted by recalculated total (desc).
    Columns: plays, original_total, recalculated_total, mean_difference.
    """
    if frame.empty:
        return pd.DataFrame(
            columns=["plays", "original_total", "recalculated_total", "mean_difference"]
        )
    summary = frame.groupby("player").agg(
        plays=("beatmap_id", "size"),
        original_total=("original_pp", "sum"),
        recalculated_total=("recalculated_pp", "sum"),
        mean_difference=("difference", "mean"),
    )
    return summary.round(2).sort_values("recalculated_total", ascending=False)

# ---------- CLI ----------

def main():
    ap = argparse.ArgumentParser(description="Recalculate top-player PP and print a summary.")
    ap.add_argument("--mode", type=int, default=0,
                    help=f"Game mode {config.MODE_MIN}-{config.MODE_MAX}")
    ap.add_argument("--version", type=int, default=0,
                    help="Ruleset: 0 = standard, 1 = relax, 2 = scorev2")
    ap.add_argument("--branch", type=int, default=config.DEFAULT_BRANCH,
                    help="Engine branch: 0 = live, 1 = with cheat values, 2 = without, 3 = legit")
    ap.add_argument("--rx", action="store_true", help="OR the relax bit into scorev2 mods")
    ap.add_argument("--out", type=Path, default=None,
                    help="Optional CSV path for the per-play table")
    args = ap.parse_args()

    variant = parse_variant(args.version, args.branch, args.rx)
    store = get_artifact_store()
    store.ensure_root()

    results = run_recalculation(
        args.mode,
        variant,
        client=get_ranking_client(),
        store=store,
        engines=get_engines(),
    )

    frame = results_to_frame(results)
    print(summarize_by_player(frame).to_string())

    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(args.out, index=False, encoding="utf-8")
        print(f"Wrote {len(frame)} rows to {args.out}")

if __name__ == "__main__":
    main()
