"""
Principal component analysis of feature-by-sample expression matrices.

The functions here are pure: they take a matrix, return new objects and never
log. Reporting (e.g. which features were dropped by the variance filter) is
left to the caller, see :mod:`expr_pca.analysis`.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd
from scipy import linalg

from .errors import DegenerateInputError, EmptyResultError, IndexOutOfRangeError, InvalidMatrixError

VARIANCE_THRESHOLD = 0.001


def _as_frame(matrix) -> pd.DataFrame:
    if isinstance(matrix, FilterResult):
        matrix = matrix.matrix
    if isinstance(matrix, pd.DataFrame):
        df = matrix
    else:
        arr = np.asarray(matrix, dtype=float)
        if arr.ndim != 2:
            raise InvalidMatrixError(f"Expected a 2D matrix, got {arr.ndim} dimension(s)")
        df = pd.DataFrame(arr)
    try:
        df = df.astype(float)
    except (TypeError, ValueError) as e:
        raise InvalidMatrixError(f"Matrix contains non-numeric values: {e}") from e
    if not np.isfinite(df.to_numpy()).all():
        raise InvalidMatrixError("Matrix contains missing or infinite values")
    return df


def feature_standard_deviations(matrix) -> pd.Series:
    """Sample standard deviation (N-1 denominator) of every feature (row)."""
    df = _as_frame(matrix)
    if df.shape[1] < 2:
        raise EmptyResultError(
            f"At least 2 samples are needed for a standard deviation, got {df.shape[1]}"
        )
    return df.std(axis=1, ddof=1)


@dataclass(frozen=True)
class FilterResult:
    """Filtered feature matrix plus the report of what was removed."""

    matrix: pd.DataFrame
    std: pd.Series
    removed: List
    threshold: float

    @property
    def n_removed(self) -> int:
        return len(self.removed)

    @property
    def n_kept(self) -> int:
        return self.matrix.shape[0]


def filter_low_variance_features(matrix, threshold: float = VARIANCE_THRESHOLD) -> FilterResult:
    """
    Drop features whose sample standard deviation is below ``threshold``.

    Args:
        matrix: features x samples matrix (DataFrame or 2D array).
        threshold: rows with std strictly below this value are removed.

    Returns:
        FilterResult with the kept rows (input order preserved), the std of
        every input row and the labels of the removed rows.

    Raises:
        EmptyResultError: fewer than two samples, or every row was removed.
    """
    df = _as_frame(matrix)
    if df.shape[0] < 1:
        raise EmptyResultError("Matrix has no features")
    std = feature_standard_deviations(df)

    keep = (std >= threshold).to_numpy()
    if not keep.any():
        raise EmptyResultError(
            f"All {df.shape[0]} features have a standard deviation below {threshold}"
        )
    removed = df.index[~keep].tolist()
    return FilterResult(matrix=df.loc[keep], std=std, removed=removed, threshold=threshold)


class StandardScaler:
    """
    A lightweight StandardScaler implementation, same API as sklearn.preprocessing.StandardScaler.
    Standardizes features (columns) by removing the mean and scaling to unit variance.

    ``ddof=1`` divides by the sample standard deviation, the convention used by R's
    ``scale()``/``prcomp(scale=TRUE)``; sklearn uses ``ddof=0``.
    """
    def __init__(self, with_mean=True, with_std=True, ddof=1):
        self.with_mean = with_mean
        self.with_std = with_std
        self.ddof = ddof
        self.mean_ = None
        self.scale_ = None
        self.var_ = None
        self.n_features_in_ = None
        self.n_samples_seen_ = None

    def fit(self, X):
        if hasattr(X, "to_numpy"):
            X = X.to_numpy()
        X = np.asarray(X, dtype=float)

        self.n_samples_seen_ = X.shape[0]
        self.n_features_in_ = X.shape[1]

        if self.with_mean:
            self.mean_ = np.mean(X, axis=0)
        else:
            self.mean_ = np.zeros(X.shape[1])

        if self.with_std:
            if self.n_samples_seen_ <= self.ddof:
                raise DegenerateInputError(
                    f"Cannot scale with {self.n_samples_seen_} sample(s)"
                )
            self.var_ = np.var(X, axis=0, ddof=self.ddof)
            self.scale_ = np.sqrt(self.var_)
        else:
            self.scale_ = np.ones(X.shape[1])
            self.var_ = np.ones(X.shape[1])

        return self

    def constant_features(self):
        """Boolean mask of the columns with (numerically) zero spread."""
        tol = 10 * np.finfo(float).eps * np.maximum(np.abs(self.mean_), 1.0)
        return self.scale_ <= tol

    def transform(self, X):
        if hasattr(X, "to_numpy"):
            X = X.to_numpy()
        X = np.asarray(X, dtype=float)

        if self.with_mean:
            X = X - self.mean_
        if self.with_std:
            X = X / self.scale_
        return X

    def fit_transform(self, X):
        self.fit(X)
        return self.transform(X)

    def inverse_transform(self, X):
        X = np.asarray(X, dtype=float)
        if self.with_std:
            X = X * self.scale_
        if self.with_mean:
            X = X + self.mean_
        return X


class SciPyPCA:
    """
    A lightweight PCA implementation using scipy.linalg.svd, same API as sklearn.decomposition.PCA
    for n_components, fit, transform and fit_transform.

    Components are sorted by decreasing singular value (stable on ties) and each
    component's sign is fixed so that its largest-magnitude loading is positive,
    which makes repeated fits on identical data return identical output.
    """
    def __init__(self, n_components=None):
        self.n_components = n_components
        self.components_ = None
        self.explained_variance_ = None
        self.explained_variance_ratio_ = None
        self.mean_ = None
        self.n_samples_ = None
        self.n_features_ = None
        self.singular_values_ = None
        self.n_components_ = None  # Set after fit

    def fit(self, X):
        if hasattr(X, "to_numpy"):
            X = X.to_numpy()
        X = np.asarray(X, dtype=float)

        n_samples, n_features = X.shape
        if n_samples < 2 or n_features < 1:
            raise DegenerateInputError(
                f"PCA needs at least 2 samples and 1 feature, got {n_samples} x {n_features}"
            )
        self.n_samples_ = n_samples
        self.n_features_ = n_features

        # 1. Center the data
        self.mean_ = np.mean(X, axis=0)
        X_centered = X - self.mean_

        # 2. Economy SVD: X_centered = U * S * Vt
        try:
            U, S, Vt = linalg.svd(X_centered, full_matrices=False)
        except linalg.LinAlgError as e:
            raise DegenerateInputError(f"SVD computation failed: {e}") from e

        order = np.argsort(-S, kind="stable")
        U, S, Vt = U[:, order], S[order], Vt[order]

        tol = np.finfo(float).eps * max(n_samples, n_features) * max(1.0, np.abs(X_centered).max())
        if S.size == 0 or S[0] <= tol:
            raise DegenerateInputError("Input has no variance; no component can be extracted")

        # 3. Deterministic signs
        max_abs_rows = np.argmax(np.abs(Vt), axis=1)
        signs = np.sign(Vt[np.arange(Vt.shape[0]), max_abs_rows])
        signs[signs == 0] = 1.0
        Vt = Vt * signs[:, np.newaxis]
        U = U * signs

        # 4. Explained variance
        explained_variance_ = (S ** 2) / (n_samples - 1)
        explained_variance_ratio_ = explained_variance_ / explained_variance_.sum()

        # 5. Resolve n_components; centering removes one degree of freedom
        max_comps = min(n_samples - 1, n_features)
        if self.n_components is None:
            n_comps = max_comps
        elif isinstance(self.n_components, (int, np.integer)):
            n_comps = int(self.n_components)
        elif 0 < self.n_components < 1:
            # Explain variance ratio
            cumulative_var = np.cumsum(explained_variance_ratio_)
            n_comps = int(np.searchsorted(cumulative_var, self.n_components)) + 1
        else:
            n_comps = max_comps

        n_comps = max(1, min(n_comps, max_comps))

        self.components_ = Vt[:n_comps]
        self.explained_variance_ = explained_variance_[:n_comps]
        self.explained_variance_ratio_ = explained_variance_ratio_[:n_comps]
        self.singular_values_ = S[:n_comps]
        self.n_components_ = n_comps

        return self

    def transform(self, X):
        if hasattr(X, "to_numpy"):
            X = X.to_numpy()
        X = np.asarray(X, dtype=float)

        X_centered = X - self.mean_
        return np.dot(X_centered, self.components_.T)

    def fit_transform(self, X):
        self.fit(X)
        return self.transform(X)


def component_labels(n: int) -> List[str]:
    return [f"PC{i + 1}" for i in range(n)]


@dataclass(frozen=True)
class PCAResult:
    """
    Output of :func:`compute_pca`.

    Attributes:
        sdev: standard deviations of the components (non-increasing, >= 0).
        singular_values: singular values of the standardized samples x features matrix.
        rotation: loadings, features x components (columns are unit eigenvectors).
        scores: sample coordinates, samples x components.
        center: per-feature mean subtracted before the decomposition.
        scale: per-feature standard deviation divided out, None if not standardized.
    """

    sdev: np.ndarray
    singular_values: np.ndarray
    rotation: pd.DataFrame
    scores: pd.DataFrame
    center: pd.Series
    scale: Optional[pd.Series]

    @property
    def n_components(self) -> int:
        return len(self.sdev)

    @property
    def labels(self) -> List[str]:
        return list(self.scores.columns)

    @property
    def explained_variance_ratio(self) -> pd.Series:
        var = self.sdev ** 2
        return pd.Series(var / var.sum(), index=self.labels)


def compute_pca(matrix, standardize: bool = True) -> PCAResult:
    """
    PCA of a features x samples matrix, samples being the observations.

    The matrix is transposed to samples x features, centered and, when
    ``standardize`` is true, every feature is divided by its sample standard
    deviation. Components come from the SVD of that matrix; at most
    ``min(N - 1, p)`` are returned.

    Raises:
        DegenerateInputError: fewer than 2 samples, no features, a constant
            feature while standardizing, or no variance at all.
    """
    df = _as_frame(matrix)
    n_features, n_samples = df.shape
    if n_samples < 2 or n_features < 1:
        raise DegenerateInputError(
            f"PCA needs at least 2 samples and 1 feature, got {n_features} feature(s) x {n_samples} sample(s)"
        )

    X = df.T  # samples x features
    scaler = StandardScaler(with_mean=True, with_std=standardize)
    scaler.fit(X)
    if standardize:
        constant = scaler.constant_features()
        if constant.any():
            names = df.index[constant].tolist()
            raise DegenerateInputError(
                f"Cannot rescale {len(names)} constant feature(s) to unit variance: {names[:10]}"
            )
    X_std = scaler.transform(X)

    pca = SciPyPCA().fit(X_std)
    labels = component_labels(pca.n_components_)

    rotation = pd.DataFrame(pca.components_.T, index=df.index, columns=labels)
    scores = pd.DataFrame(pca.transform(X_std), index=df.columns, columns=labels)
    sdev = pca.singular_values_ / np.sqrt(n_samples - 1)

    return PCAResult(
        sdev=sdev,
        singular_values=pca.singular_values_,
        rotation=rotation,
        scores=scores,
        center=pd.Series(scaler.mean_, index=df.index),
        scale=pd.Series(scaler.scale_, index=df.index) if standardize else None,
    )


def _check_component(result: PCAResult, k) -> int:
    try:
        k = operator.index(k)
    except TypeError as e:
        raise IndexOutOfRangeError(f"Component index must be an integer, got {k!r}") from e
    if not 0 <= k < result.n_components:
        raise IndexOutOfRangeError(
            f"Component index {k} out of range; {result.n_components} component(s) computed"
        )
    return k


def explained_variance_ratio(result: PCAResult, k: int) -> float:
    """Fraction of the total variance explained by component ``k`` (0-indexed)."""
    k = _check_component(result, k)
    var = result.sdev ** 2
    return float(var[k] / var.sum())


def cumulative_variance_ratio(result: PCAResult) -> pd.Series:
    return result.explained_variance_ratio.cumsum()


def projected_coordinates(result: PCAResult, components: Iterable[int]) -> pd.DataFrame:
    """Sample scores restricted to ``components`` (0-indexed), sample order preserved."""
    idx = [_check_component(result, k) for k in components]
    return result.scores.iloc[:, idx]
