"""
Feed-cost report runner.

Usage:
    poetry run python run_report.py --data-dir data/farm --output-dir data/output
    poetry run python run_report.py --data-dir data/farm --output-dir out \\
        --pivot-config pivots/monthly_by_feed.json --format parquet
    poetry run python run_report.py --data-dir data/farm --output-dir out \\
        --as-of 2025-06-30 --scope stall-1 stall-2
"""

import argparse
import logging
import time
from datetime import date

from feedledger.ingest import load_dataset, parse_gea_export
from feedledger.metrics import CycleReport, evaluate_cycles, report_items
from feedledger.pivot import PivotEngine, load_pivot_config
from feedledger.writers import ReportWriter

logger = logging.getLogger("feedledger")


def format_summary(reports: dict[str, CycleReport]) -> str:
    """Plain-text overview, one block per cycle."""
    lines = ["=" * 60, "FEED COST REPORT", "=" * 60]
    for cycle_id, report in reports.items():
        m = report.metrics
        lines.append(f"\nCycle {report.cycle.name or cycle_id}")
        lines.append(
            f"  Animals: {m.total_animals}  Duration: {m.cycle_duration_days} days"
        )
        lines.append(
            f"  Feed: {m.total_feed_quantity:,.1f} kg"
            f"  Cost: {m.total_feed_cost:,.2f} EUR"
            f"  ({m.feed_cost_per_animal:,.2f} EUR/animal)"
        )
        lines.append(
            f"  FCR: {m.feed_conversion_ratio:.2f}  "
            f"Profit/loss: {m.profit_loss:,.2f} EUR ({m.profit_margin:.1f}%)"
        )
        for area in report.areas:
            lines.append(
                f"    {area.scope_name:<24} {area.total_feed_cost:>12,.2f} EUR"
                f"  {area.percentage_of_total:5.1f}%"
            )
        quality = report.data_quality
        if not quality.is_clean:
            lines.append(
                f"  Data quality: {len(quality.missing_prices)} feed types without "
                f"price, {sum(g.days for g in quality.missing_feed_days)} days "
                "without feed data"
            )
        if quality.unattributed is not None:
            lines.append(
                f"  Not attributed to any area: {quality.unattributed.rows} rows, "
                f"{quality.unattributed.cost:,.2f} EUR"
            )
    lines.append("=" * 60)
    return "\n".join(lines)


def main() -> None:
    """Evaluate all cycles of a dataset and export the reports."""
    parser = argparse.ArgumentParser(
        description="Livestock feed-cost report runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  poetry run python run_report.py --data-dir data/farm --output-dir out
  poetry run python run_report.py --data-dir data/farm --output-dir out --format parquet
        """,
    )
    parser.add_argument(
        "--data-dir", required=True, help="Directory with cycles.json and CSV tables"
    )
    parser.add_argument(
        "--output-dir", required=True, help="Directory for output artifacts"
    )
    parser.add_argument(
        "--pivot-config",
        default=None,
        help="JSON pivot configuration; writes a pivot table when given",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Evaluation date for ongoing cycles (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "parquet"],
        default="csv",
        help="Table format (default: csv)",
    )
    parser.add_argument(
        "--scope",
        nargs="+",
        default=None,
        help="Only report these area / area-group ids",
    )
    parser.add_argument(
        "--gea-export",
        default=None,
        help="GEA feeding-system export to add to the dataset's consumption",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Fail on a bad pivot config before doing any work
    pivot_config = load_pivot_config(args.pivot_config) if args.pivot_config else None

    start_time = time.time()
    batch = load_dataset(args.data_dir)
    if args.gea_export:
        export = parse_gea_export(args.gea_export)
        batch.consumption.extend(export.records)

    reports = evaluate_cycles(batch, scope_filter=args.scope, as_of=args.as_of)

    writer = ReportWriter(args.output_dir, args.format)
    writer.write_reports(reports)

    if pivot_config is not None:
        writer.write_pivot(
            PivotEngine().generate(report_items(reports), pivot_config)
        )

    print("\n" + format_summary(reports) + "\n")
    logger.info(
        "Wrote %d files to %s in %.2f seconds",
        len(writer.written),
        writer.output_dir,
        time.time() - start_time,
    )


if __name__ == "__main__":
    main()
