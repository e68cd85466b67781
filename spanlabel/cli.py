# spanlabel/cli.py
"""
spanlabel CLI -- Click commands with a rich terminal UI.

Provides the ``spanlabel`` console entry-point declared in pyproject.toml as
``spanlabel.cli:cli``:

- label:     SpanLabelingService on a text argument or --file
- evaluate:  relaxed-F1 report and target checks over a JSONL dataset
- config:    SpanlabelConfig display
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape as _esc

from . import __version__
from . import cli_theme as theme
from .config import get_config
from .errors import LabelingFailed, ServiceUnavailable
from .models import LabelResult
from .utils.logging import get_current_log_file, get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


def _print_version(
    ctx: click.Context,
    _param: click.Parameter,
    value: bool,
) -> None:
    if not value or ctx.resilient_parsing:
        return
    theme.print_version(__version__, console)
    ctx.exit()


# ---------------------------------------------------------------------------
# Main CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log at DEBUG level to stderr as well.")
def cli(verbose: bool) -> None:
    """spanlabel -- label video concept descriptions with character-accurate spans."""
    setup_logging(level="DEBUG" if verbose else None, console_output=verbose)


# ---------------------------------------------------------------------------
# label
# ---------------------------------------------------------------------------


def _read_text(text: Optional[str], file_path: Optional[Path]) -> str:
    if text and file_path:
        raise click.UsageError("Pass TEXT or --file, not both.")
    if file_path is not None:
        return file_path.read_text(encoding="utf-8")
    if not text:
        raise click.UsageError("Pass TEXT or --file.")
    return text


def _render_result(text: str, result: LabelResult) -> None:
    theme.section("Spans", console, "01")
    if result.is_adversarial:
        console.print(theme.warn("Input flagged as adversarial; no spans returned."))
    t = theme.make_table()
    t.add_column("#", style="dim", justify="right")
    t.add_column("Text")
    t.add_column("Role", no_wrap=True)
    t.add_column("Range", style="dim", no_wrap=True)
    t.add_column("Conf", justify="right")
    for i, span in enumerate(result.spans, 1):
        t.add_row(
            str(i),
            _esc(span.text),
            theme.role_markup(span.role),
            f"{span.start}:{span.end}",
            f"{span.confidence:.2f}",
        )
    console.print(t)

    theme.section("Meta", console, "02")
    kv = theme.make_kv_table()
    kv.add_row("source", theme.badge(result.meta.source or "unknown"))
    kv.add_row("version", result.meta.version)
    kv.add_row("spans", str(len(result.spans)))
    kv.add_row("characters", str(len(text)))
    if result.meta.notes:
        kv.add_row("notes", _esc(result.meta.notes))
    for step, ms in (result.meta.timings or {}).items():
        kv.add_row(f"timing.{step}", f"{ms:.1f} ms")
    console.print(kv)
    console.print()


@cli.command()
@click.argument("text", required=False)
@click.option("--file", "file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None, help="Read the text from a file.")
@click.option("--max-spans", type=click.IntRange(1, 50), default=None, help="Upper bound on returned spans.")
@click.option("--min-confidence", type=click.FloatRange(0.0, 1.0), default=None, help="Drop spans below this confidence.")
@click.option("--no-fastpath", is_flag=True, default=False, help="Skip the dictionary fast path.")
@click.option("--no-repair", is_flag=True, default=False, help="Fall back to lenient validation instead of a repair call.")
@click.option("--timings", is_flag=True, default=False, help="Include per-step timings in the result.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON.")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Save the JSON result to a file.")
def label(
    text: Optional[str],
    file_path: Optional[Path],
    max_spans: Optional[int],
    min_confidence: Optional[float],
    no_fastpath: bool,
    no_repair: bool,
    timings: bool,
    as_json: bool,
    output: Optional[Path],
) -> None:
    """Label TEXT (or the contents of --file) with spans.

    \b
    Examples:
      spanlabel label "Wide shot, camera pans left over a foggy harbor at dawn"
      spanlabel label --file concept.txt --json
    """
    from .service import SpanLabelingService

    source_text = _read_text(text, file_path)
    service = SpanLabelingService()

    updates: dict[str, Any] = {}
    if max_spans is not None:
        updates["max_spans"] = max_spans
    if min_confidence is not None:
        updates["min_confidence"] = min_confidence
    policy = service.default_policy().model_copy(update=updates)
    options = service.default_options().model_copy(update={
        "use_fastpath": False if no_fastpath else None,
        "enable_repair": False if no_repair else None,
        "include_timings": timings,
    })

    try:
        if as_json:
            result = asyncio.run(service.label(source_text, policy, options))
        else:
            with theme.spinner("Labeling...", console):
                result = asyncio.run(service.label(source_text, policy, options))
    except ServiceUnavailable as exc:
        logger.error("Text-generation service unavailable: %s", exc)
        raise click.ClickException(f"Text-generation service unavailable: {exc}")
    except LabelingFailed as exc:
        logger.error("Labeling failed: %s", exc)
        raise click.ClickException(f"Could not label text: {exc}")

    payload = result.to_dict()
    if output is not None:
        output.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    if as_json:
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    _render_result(source_text, result)
    if output is not None:
        console.print(theme.ok(f"Saved to {output}"))


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------


def _render_report(report: dict[str, Any], checks: dict[str, Any]) -> None:
    summary = report["summary"]

    theme.section("Summary", console, "01")
    kv = theme.make_kv_table()
    kv.add_row("cases", str(summary["count"]))
    for key in ("relaxed_f1", "precision", "recall", "taxonomy_accuracy",
                "fragmentation_rate", "over_extraction_rate",
                "json_validity_rate", "safety_pass_rate"):
        if key in summary:
            kv.add_row(key, f"{summary[key]:.3f}")
    kv.add_row(
        "tp / fp / fn",
        f"{summary['true_positives']} / {summary['false_positives']} / {summary['false_negatives']}",
    )
    console.print(kv)

    if report["by_category"]:
        theme.section("By Role", console, "02")
        t = theme.make_table()
        t.add_column("Role", no_wrap=True)
        t.add_column("F1", justify="right")
        t.add_column("Precision", justify="right")
        t.add_column("Recall", justify="right")
        t.add_column("Support", justify="right", style="dim")
        for role, m in report["by_category"].items():
            t.add_row(
                theme.role_markup(role),
                f"{m['f1']:.3f}",
                f"{m['precision']:.3f}",
                f"{m['recall']:.3f}",
                str(m["support"]),
            )
        console.print(t)

    theme.section("Targets", console, "03")
    t = theme.make_table()
    t.add_column("Check", no_wrap=True)
    t.add_column("Value", justify="right")
    t.add_column("Target", justify="right", style="dim")
    t.add_column("Status")
    for check in checks["checks"]:
        bound = "≤" if check["kind"] == "max" else "≥"
        t.add_row(
            check["name"],
            f"{check['value']:.3f}",
            f"{bound} {check['threshold']}",
            theme.badge("PASS", "pass") if check["passed"] else theme.badge("FAIL", "fail"),
        )
    console.print(t)
    console.print()


@cli.command()
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON.")
@click.pass_context
def evaluate(ctx: click.Context, dataset: Path, as_json: bool) -> None:
    """Score predicted spans against ground truth in a JSONL DATASET.

    Exits with status 1 when any quality target is missed.

    \b
    Examples:
      spanlabel evaluate golden.jsonl
    """
    from .evaluation import check_target_thresholds, generate_evaluation_report, load_jsonl

    try:
        cases = load_jsonl(dataset)
    except ValueError as exc:
        raise click.ClickException(str(exc))

    report = generate_evaluation_report(cases)
    checks = check_target_thresholds(report["summary"])
    logger.info(
        "Evaluated %d cases from %s: relaxed F1 %.3f, %s",
        len(cases), dataset, report["summary"]["relaxed_f1"],
        "passed" if checks["passed"] else f"{len(checks['failed_checks'])} checks failed",
    )

    if as_json:
        click.echo(json.dumps({**report, "checks": checks}, indent=2, ensure_ascii=False))
    else:
        _render_report(report, checks)
        for failure in checks["failures"]:
            console.print(theme.err(failure))
        if checks["passed"]:
            console.print(theme.ok("All quality targets met"))

    if not checks["passed"]:
        ctx.exit(1)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group(invoke_without_command=True)
@click.pass_context
def config(ctx: click.Context) -> None:
    """View the resolved spanlabel configuration."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(config_show)


@config.command("show")
def config_show() -> None:
    """Show current configuration.

    \b
    Examples:
      spanlabel config show
    """
    cfg = get_config()
    dump = cfg.model_dump()

    theme.section("Language Model", console, "01")
    t = theme.make_kv_table()
    t.add_row("lm", dump["lm"])
    t.add_row("provider", dump["provider"])
    t.add_row("api_base", str(dump["api_base"] or "[dim]default[/dim]"))
    t.add_row("lm_temperature", str(dump["lm_temperature"]))
    t.add_row("lm_two_pass", dump["lm_two_pass"])
    t.add_row("request_timeout_s", f"{dump['request_timeout_s']}s")
    t.add_row("stream", str(dump["stream"]))
    api_key = dump["api_key"]
    if api_key:
        masked = api_key[:4] + "···" + api_key[-4:] if len(api_key) > 8 else "***"
    else:
        masked = "[dim]not set[/dim]"
    t.add_row("api_key", masked)
    console.print(t)

    theme.section("Labeling", console, "02")
    t = theme.make_kv_table()
    for key in ("max_spans", "min_confidence", "template_version", "non_technical_word_limit",
                "allow_overlap", "enable_repair", "camera_review_mode"):
        t.add_row(key, str(dump[key]))
    console.print(t)

    theme.section("Fast Path & Chunking", console, "03")
    t = theme.make_kv_table()
    t.add_row("fastpath_enabled", str(dump["fastpath_enabled"]))
    t.add_row("fastpath_min_words", str(dump["fastpath_min_words"]))
    t.add_row("chunk_max_words", str(dump["chunk_max_words"]))
    console.print(t)

    theme.section("Cache", console, "04")
    t = theme.make_kv_table()
    t.add_row("cache_ttl_s", f"{dump['cache_ttl_s']}s")
    t.add_row("cache_short_ttl_s", f"{dump['cache_short_ttl_s']}s")
    t.add_row("cache_max_entries", str(dump["cache_max_entries"]))
    console.print(t)

    theme.section("Paths", console, "05")
    t = theme.make_kv_table()
    t.add_row("home_dir", str(dump["home_dir"]))
    t.add_row("log_dir", str(cfg.log_dir))
    log_file = get_current_log_file()
    if log_file is not None:
        t.add_row("log_file", str(log_file))
    console.print(t)
    console.print()
