"""CLI entrypoint.

Commands:
- `pii-audit scan-csv data.csv --rules-file rules.yaml --out failures.csv [--config scan.yaml]`
- `pii-audit review --failures failures.csv --output unresolved.csv [--ignore-rules IgnoreList.yaml] [--report-rules ReportList.yaml]`
- `pii-audit suggest-rules --failures failures.csv --rules-out IgnoreList.yaml --pattern symbols --action Ignore`

CLI flags override keys from the `--config` YAML.
"""

from __future__ import annotations
import argparse
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from rich import box
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from .failures import Failure
from .logging_ import setup_logging
from .policies.loader import load_yaml
from .reporting import CsvDestination, FailureStoreReport, ParquetDestination, ReportDecoder
from .review import UnattendedReviewer
from .rules import RuleAction, YamlRuleStore, make_generator
from .rules.generator import list_pattern_funcs
from .scanning import Classifier, CsvFileScanner, ScannerOptions

log = logging.getLogger("pii_audit.cli")

DEFAULT_IGNORE_RULES = "IgnoreList.yaml"
DEFAULT_REPORT_RULES = "ReportList.yaml"


def _scanner_options(args: argparse.Namespace) -> ScannerOptions:
    cfg: Dict[str, Any] = load_yaml(args.config) if args.config else {}
    overrides = {
        "rules_file": args.rules_file,
        "rules_directory": args.rules_dir,
        "allow_list_file": args.allow_list,
        "skip_columns": args.skip_columns,
        "validation_cache_limit": args.cache_limit,
    }
    cfg.update({k: v for k, v in overrides.items() if v is not None})
    if args.ignore_postcodes:
        cfg["ignore_postcodes"] = True
    if args.ignore_dates:
        cfg["ignore_dates_in_text"] = True
    return ScannerOptions.from_dict(cfg)


def _decode_with_progress(
    path: str, run_parallel: bool = True, csv_separator: Optional[str] = None
) -> Tuple[List[Failure], ReportDecoder]:
    bar = tqdm(desc=f"Loading {os.path.basename(path)}", unit="rows")

    def progress(n: int) -> None:
        bar.n = n
        bar.refresh()

    decoder = ReportDecoder(run_parallel=run_parallel, progress=progress, csv_separator=csv_separator)
    try:
        failures = decoder.decode(path)
    finally:
        bar.close()
    return failures, decoder


def cmd_scan_csv(args: argparse.Namespace, console: Console) -> int:
    options = _scanner_options(args)
    log.info("Scanning %d file(s) into %s", len(args.inputs), args.out)

    report = FailureStoreReport(os.path.basename(args.out), args.batch_size)
    report.add_destination(CsvDestination(args.out, csv_separator=args.csv_separator,
                                          strip_whitespace_on_write=args.strip_whitespace))
    if args.parquet_out:
        report.add_destination(ParquetDestination(args.parquet_out))

    classifier = Classifier.from_options(options)
    scanner = CsvFileScanner(
        classifier,
        [report],
        primary_key_column=args.pk_column,
        log_progress_every=options.log_progress_every,
        stop_after=args.stop_after,
    )

    table = Table(title="[bold]Scan results[/bold]", box=box.ROUNDED, border_style="green")
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Failures", justify="right", style="magenta")
    try:
        for path in args.inputs:
            table.add_row(path, f"{scanner.scan(path):,}")
    finally:
        scanner.close()
        classifier.close()

    stats = classifier.stats()
    table.add_row("[bold]total[/bold]", f"{scanner.failure_count:,}")
    console.print(table)
    console.print(f"[dim]rows={scanner.rows_processed:,} cache hits={stats.cache_hits:,} "
                  f"misses={stats.cache_misses:,} parts={stats.parts_found:,}[/dim]")
    return 0


def cmd_review(args: argparse.Namespace, console: Console) -> int:
    ignorer = YamlRuleStore(args.ignore_rules, generator=make_generator(args.pattern, RuleAction.IGNORE))
    updater = YamlRuleStore(args.report_rules, generator=make_generator(args.pattern, RuleAction.REPORT))

    reviewer = UnattendedReviewer(args.failures, args.output, ignorer, updater, csv_separator=args.csv_separator)
    rc = reviewer.run()

    table = Table(title="[bold]Unattended review[/bold]", box=box.ROUNDED, border_style="cyan")
    for name, style in (("Total", "cyan"), ("Updates", "green"), ("Ignored", "yellow"),
                        ("Unresolved", "red"), ("Errors", "red")):
        table.add_column(name, justify="right", style=style)
    table.add_row(f"{reviewer.total:,}", f"{reviewer.updates:,}", f"{reviewer.ignores:,}",
                  f"{reviewer.unresolved:,}", f"{len(reviewer.errors):,}")
    console.print(table)
    console.print(f"[dim]Unresolved failures written to {args.output}[/dim]")
    return rc


def cmd_suggest_rules(args: argparse.Namespace, console: Console) -> int:
    action = RuleAction.parse(args.action)
    store = YamlRuleStore(args.rules_out, generator=make_generator(args.pattern, action))
    failures, decoder = _decode_with_progress(args.failures, run_parallel=not args.sequential,
                                              csv_separator=args.csv_separator)

    added = 0
    skipped = 0
    for failure in failures:
        covered, _ = store.has_rule_covering(failure)
        if covered:
            skipped += 1
            continue
        rule = store.default_rule_for(failure)
        if args.dry_run:
            console.print(f"{rule.if_column}: [yellow]{rule.if_pattern}[/yellow]")
        else:
            store.add(rule)
        added += 1

    verb = "Would add" if args.dry_run else "Added"
    console.print(f"[bold]{verb} {added:,} rule(s)[/bold] to {args.rules_out} "
                  f"({skipped:,} already covered, {decoder.problems:,} unreadable rows)")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pii-audit")
    p.add_argument("--out-dir", default=".", help="Directory for logs (written to <out-dir>/logs)")
    p.add_argument("--run-id", default=None, help="Log file name (default: UTC timestamp)")
    p.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("scan-csv", help="Classify every cell of one or more CSV files")
    ps.add_argument("inputs", nargs="+", help="CSV files with a header row")
    ps.add_argument("--config", default=None, help="Scanner options YAML")
    ps.add_argument("--rules-file", default=None)
    ps.add_argument("--rules-dir", default=None)
    ps.add_argument("--allow-list", default=None, help="CSV whose first column lists values never to report")
    ps.add_argument("--skip-columns", default=None, help="Comma separated column names")
    ps.add_argument("--cache-limit", type=int, default=None)
    ps.add_argument("--ignore-postcodes", action="store_true")
    ps.add_argument("--ignore-dates", action="store_true")
    ps.add_argument("--out", required=True, help="Failure report CSV")
    ps.add_argument("--parquet-out", default=None, help="Also write the report as Parquet")
    ps.add_argument("--csv-separator", default=None)
    ps.add_argument("--strip-whitespace", action="store_true")
    ps.add_argument("--pk-column", default=None, help="Column used as ResourcePrimaryKey")
    ps.add_argument("--batch-size", type=int, default=100)
    ps.add_argument("--stop-after", type=int, default=0, help="Stop after N rows (0 = no limit)")

    pr = sub.add_parser("review", help="Resolve a failure report against rule stores without prompting")
    pr.add_argument("--failures", required=True)
    pr.add_argument("--output", required=True, help="CSV for failures no rule covers")
    pr.add_argument("--ignore-rules", default=DEFAULT_IGNORE_RULES)
    pr.add_argument("--report-rules", default=DEFAULT_REPORT_RULES)
    pr.add_argument("--pattern", default="symbols", choices=list_pattern_funcs())
    pr.add_argument("--csv-separator", default=None, help="Delimiter of the failures report and of the output")

    pg = sub.add_parser("suggest-rules", help="Add a generated rule for every uncovered failure")
    pg.add_argument("--failures", required=True)
    pg.add_argument("--rules-out", default=DEFAULT_IGNORE_RULES)
    pg.add_argument("--pattern", default="symbols", choices=list_pattern_funcs())
    pg.add_argument("--action", default="Ignore", choices=["Ignore", "Report"])
    pg.add_argument("--csv-separator", default=None, help="Delimiter of the failures report")
    pg.add_argument("--sequential", action="store_true", help="Decode the report on a single thread")
    pg.add_argument("--dry-run", action="store_true")

    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(out_dir=args.out_dir, run_id=args.run_id,
                  level=logging.DEBUG if args.verbose else logging.INFO)
    console = Console()

    if args.cmd == "scan-csv":
        return cmd_scan_csv(args, console)
    if args.cmd == "review":
        return cmd_review(args, console)
    return cmd_suggest_rules(args, console)


if __name__ == "__main__":
    raise SystemExit(main())
