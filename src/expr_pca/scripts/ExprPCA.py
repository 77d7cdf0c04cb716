#!/usr/bin/env python

import sys
import argparse
import importlib.metadata as importlib_metadata
import logging
from pathlib import Path as P

import expr_pca
from expr_pca.analysis import run_analysis, write_tables
from expr_pca.config import load_config, default_config_path
from expr_pca.errors import ExprPCAError
from expr_pca.io import read_expression_matrix, read_labels
from expr_pca.logging_setup import init_global_logging, run_logging

REPORTED_PACKAGES = ("numpy", "scipy", "pandas", "plotly")


def package_versions(packages=REPORTED_PACKAGES):
    versions = {}
    for name in packages:
        try:
            versions[name] = importlib_metadata.version(name)
        except importlib_metadata.PackageNotFoundError:
            versions[name] = "not installed"
    return versions


def version_report() -> str:
    lines = [f"expr-pca version: {expr_pca.__version__}", f"python: {sys.version.split()[0]}"]
    lines += [f"{name}: {version}" for name, version in package_versions().items()]
    return "\n".join(lines)


def build_parser():
    parser = argparse.ArgumentParser(
        description="PCA of a gene-expression matrix (features in rows, samples in columns)."
    )
    parser.add_argument("matrix", nargs="?", help="CSV/TSV expression matrix, first column holds feature ids")
    parser.add_argument("--labels", default=None, help="sample labels file (sample,label table or one label per line)")
    parser.add_argument(
        "--classes",
        nargs="+",
        default=None,
        help="keep only these classes and order samples class by class, e.g. --classes normal clearcellRCC",
    )
    parser.add_argument("--output-dir", default=None, help="directory for tables, figures and the run log")
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="drop features whose standard deviation is below this value (default 0.001)",
    )
    parser.add_argument(
        "--no-scale",
        dest="standardize",
        action="store_const",
        const=False,
        default=None,
        help="only center the features, do not scale them to unit variance",
    )
    parser.add_argument(
        "--config",
        default=default_config_path(),
        help="path to a JSON config file (defaults to $EXPR_PCA_CONFIG)",
    )
    parser.add_argument("--no-plots", action="store_true", default=False, help="skip writing the HTML figures")
    parser.add_argument("--debug", action="store_true", default=False, help="verbose logging")
    parser.add_argument(
        "--version", default=False, action="store_true", help="print version of expr-pca and its dependencies"
    )
    return parser


def resolve_settings(args, cfg):
    """CLI flag > config file > default."""
    return {
        "variance_threshold": args.threshold if args.threshold is not None else cfg["variance_threshold"],
        "standardize": args.standardize if args.standardize is not None else cfg["standardize"],
        "classes": args.classes or cfg["classes"],
        "output_dir": args.output_dir or cfg["output_dir"],
        "log_level": "DEBUG" if args.debug else cfg["log_level"],
    }


def main(argv=None):
    init_global_logging()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(version_report())
        return 0

    if not args.matrix:
        parser.error("the expression matrix is required")

    cfg = load_config(args.config)
    settings = resolve_settings(args, cfg)
    init_global_logging(settings["log_level"])

    output_dir = P(settings["output_dir"])
    with run_logging(output_dir, level=settings["log_level"]):
        try:
            matrix = read_expression_matrix(args.matrix)
            labels = read_labels(args.labels, samples=list(matrix.columns)) if args.labels else None

            analysis = run_analysis(
                matrix,
                labels=labels,
                threshold=settings["variance_threshold"],
                standardize=settings["standardize"],
                classes=settings["classes"],
            )
            write_tables(analysis, output_dir)

            if not args.no_plots:
                from expr_pca.plots import pca_scatter, variance_bar, save_figure

                if analysis.pca.n_components >= 2:
                    save_figure(pca_scatter(analysis), output_dir / "pca_scatter.html")
                else:
                    logging.warning("Only one component computed; skipping the 2D scatter plot")
                save_figure(variance_bar(analysis), output_dir / "variance_explained.html")
        except ExprPCAError as exc:
            logging.error(f"{type(exc).__name__}: {exc}")
            return 1

    for k in range(min(3, analysis.pca.n_components)):
        print(analysis.axis_label(k))
    return 0


if __name__ == "__main__":
    sys.exit(main())
