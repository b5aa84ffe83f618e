from __future__ import annotations

import argparse
import logging
from pathlib import Path

from trendcheck.core.pipeline import RunConfig, run_scenarios, write_outputs
from trendcheck.io.readers import read_ensemble_csv, read_observations_csv, validate_ensemble
from trendcheck.report.figures import build_comparison_figure, save_figure, summary_text


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Recursive trends: observed series vs model ensemble.")
    p.add_argument("--ensemble", type=str, required=True, help="Ensemble CSV (model,year,value or year + one column per model)")
    p.add_argument("--observed", type=str, required=True, help="Observed CSV (year,value or Year + Jan..Dec)")
    p.add_argument("--outdir", type=str, default="outputs", help="Output directory")
    p.add_argument("--end-years", type=str, default="2014,2005,2000", help="Comma-separated end years (one run each)")
    p.add_argument("--span-years", type=int, default=64, help="Longest window (years), start = end - span + 1")
    p.add_argument("--min-length", type=int, default=10, help="Shortest window (years)")
    p.add_argument("--confidence", type=float, default=0.95, help="Confidence level of the observed trend CI")
    p.add_argument("--strict", action="store_true", help="Abort when a model cannot be fitted instead of skipping it")
    p.add_argument("--obs-skiprows", type=int, default=0, help="Header lines to skip in the observed CSV")
    p.add_argument("--no-figures", action="store_true", help="Do not write HTML figures")
    p.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    args = p.parse_args(argv)
    args.end_year_list = tuple(int(x.strip()) for x in args.end_years.split(",") if x.strip())
    if not args.end_year_list:
        p.error("--end-years must list at least one year")
    if args.min_length < 10:
        p.error("--min-length must be >= 10")
    return args


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    cfg = RunConfig(
        end_years=args.end_year_list,
        span_years=int(args.span_years),
        min_length=int(args.min_length),
        confidence=float(args.confidence),
        on_model_error="raise" if args.strict else "skip",
    )

    ensemble_df = read_ensemble_csv(args.ensemble)
    ok, errors = validate_ensemble(ensemble_df, min_years=cfg.min_length)
    if not ok:
        logger.warning("Ensemble validation reported %d issue(s); affected models will be skipped or abort the run", len(errors))
        for e in errors:
            logger.warning(e)

    observed_df = read_observations_csv(args.observed, skiprows=int(args.obs_skiprows))

    results = run_scenarios(ensemble_df, observed_df, cfg)
    outdir = Path(args.outdir)

    for end_year, result in results.items():
        written = write_outputs(result, outdir)
        if not args.no_figures:
            fig = build_comparison_figure(result)
            written.append(save_figure(fig, outdir / f"recursive_trends_{end_year}.html"))

        print(summary_text(result))
        for fp in written:
            print(f"Saved: {fp}")


if __name__ == "__main__":
    main()
