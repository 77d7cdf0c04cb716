"""Run one PCA analysis: order samples, filter, decompose, tabulate."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from .errors import InvalidMatrixError
from .pca import (
    VARIANCE_THRESHOLD, FilterResult, PCAResult,
    compute_pca, cumulative_variance_ratio, explained_variance_ratio, filter_low_variance_features,
)

logger = logging.getLogger(__name__)


def align_labels(labels, samples) -> pd.Series:
    """
    Labels as a Series indexed by ``samples``, in the same order.

    A Series indexed by sample name is matched by name. Plain sequences and
    Series with a default RangeIndex are matched by position.
    """
    samples = pd.Index(samples)
    if isinstance(labels, pd.Series) and not isinstance(labels.index, pd.RangeIndex):
        if labels.index.duplicated().any():
            dupes = labels.index[labels.index.duplicated()].tolist()
            raise InvalidMatrixError(f"Duplicate sample names in labels: {dupes[:10]}")
        missing = samples.difference(labels.index, sort=False).tolist()
        if missing:
            raise InvalidMatrixError(f"No label for sample(s) {missing[:10]}")
        return labels.reindex(samples).rename("label")
    if len(labels) != len(samples):
        raise InvalidMatrixError(
            f"Got {len(labels)} label(s) for {len(samples)} sample(s)"
        )
    return pd.Series(list(labels), index=samples, name="label")


def order_samples_by_class(matrix: pd.DataFrame, labels: pd.Series, classes: Sequence[str]):
    """
    Keep only the samples whose label is in ``classes`` and group them by class,
    in the order the classes are given. Sample order within a class is kept.

    Returns:
        (matrix, labels) reindexed to the new sample order.
    """
    labels = align_labels(labels, matrix.columns)
    unknown = [c for c in classes if c not in set(labels)]
    if unknown:
        raise InvalidMatrixError(
            f"Class(es) {unknown} not found among labels {sorted(labels.unique().tolist())}"
        )
    order = [s for c in classes for s in labels.index[labels == c]]
    return matrix.loc[:, order], labels.loc[order]


@dataclass(frozen=True)
class AnalysisResult:
    filtered: FilterResult
    pca: PCAResult
    labels: Optional[pd.Series] = None

    def variance_table(self) -> pd.DataFrame:
        ratio = self.pca.explained_variance_ratio
        return pd.DataFrame(
            {
                "sdev": self.pca.sdev,
                "explained_variance_ratio": ratio.values,
                "cumulative_variance_ratio": cumulative_variance_ratio(self.pca).values,
            },
            index=pd.Index(ratio.index, name="component"),
        )

    def axis_label(self, k: int) -> str:
        """``'PC1 (42.17%)'`` for component ``k`` (0-indexed)."""
        pct = 100 * explained_variance_ratio(self.pca, k)
        return f"PC{k + 1} ({pct:.2f}%)"


def run_analysis(
        matrix: pd.DataFrame,
        labels: Optional[pd.Series] = None,
        threshold: float = VARIANCE_THRESHOLD,
        standardize: bool = True,
        classes: Optional[Sequence[str]] = None,
) -> AnalysisResult:
    """Filter low-variance features and run PCA on the remaining ones."""
    if classes:
        if labels is None:
            raise InvalidMatrixError("Selecting classes requires sample labels")
        matrix, labels = order_samples_by_class(matrix, labels, classes)
    elif labels is not None:
        labels = align_labels(labels, matrix.columns)

    if labels is not None:
        counts = labels.value_counts(sort=False)
        logger.info("Samples per class: " + ", ".join(f"{k}={v}" for k, v in counts.items()))

    logger.info(f"Filtering {matrix.shape[0]} features x {matrix.shape[1]} samples (std < {threshold})...")
    filtered = filter_low_variance_features(matrix, threshold=threshold)
    if filtered.n_removed:
        logger.info(f"Removed {filtered.n_removed} low-variance feature(s), {filtered.n_kept} kept")
        logger.debug(f"Removed features: {filtered.removed}")

    scaling = "standardized" if standardize else "centered"
    logger.info(f"Computing PCA on {filtered.n_kept} {scaling} features...")
    result = compute_pca(filtered.matrix, standardize=standardize)

    for k in range(min(3, result.n_components)):
        logger.info(f"PC{k + 1}: {100 * explained_variance_ratio(result, k):.2f}% of variance")

    return AnalysisResult(filtered=filtered, pca=result, labels=labels)


def write_tables(analysis: AnalysisResult, output_dir) -> dict:
    """Write scores, loadings, variance table and removed features to ``output_dir``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    scores = analysis.pca.scores.copy()
    if analysis.labels is not None:
        scores.insert(0, "label", analysis.labels.loc[scores.index].values)

    paths = {
        "scores": output_dir / "scores.csv",
        "loadings": output_dir / "loadings.csv",
        "variance": output_dir / "variance.csv",
        "removed": output_dir / "removed_features.txt",
    }
    scores.to_csv(paths["scores"], index_label="sample")
    analysis.pca.rotation.to_csv(paths["loadings"], index_label="feature")
    analysis.variance_table().to_csv(paths["variance"])
    with open(paths["removed"], "w", encoding="utf-8") as fh:
        for name in analysis.filtered.removed:
            fh.write(f"{name}\n")

    logger.info(f"Tables written to {output_dir}")
    return paths
