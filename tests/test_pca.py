import numpy as np
import pandas as pd
import pytest

from expr_pca.errors import DegenerateInputError, EmptyResultError, IndexOutOfRangeError, InvalidMatrixError
from expr_pca.pca import (
    SciPyPCA,
    StandardScaler,
    compute_pca,
    cumulative_variance_ratio,
    explained_variance_ratio,
    feature_standard_deviations,
    filter_low_variance_features,
    projected_coordinates,
)


def _random_matrix(p=20, n=10, seed=0):
    rng = np.random.default_rng(seed)
    return pd.DataFrame(
        rng.normal(size=(p, n)) * rng.uniform(0.5, 5.0, size=(p, 1)) + rng.uniform(0, 10, size=(p, 1)),
        index=[f"gene{i}" for i in range(p)],
        columns=[f"s{j}" for j in range(n)],
    )


def _separable_matrix():
    rng = np.random.default_rng(0)
    data = rng.normal(0, 0.1, size=(5, 10))
    data[:4, :5] += 10.0
    return pd.DataFrame(
        data,
        index=[f"gene{i}" for i in range(5)],
        columns=[f"s{j}" for j in range(10)],
    )


def test_feature_standard_deviations_uses_sample_std():
    df = pd.DataFrame([[1.0, 2.0, 3.0, 4.0]], index=["g"])
    std = feature_standard_deviations(df)
    assert np.isclose(std["g"], np.std([1.0, 2.0, 3.0, 4.0], ddof=1))


def test_filter_removes_constant_feature():
    df = pd.DataFrame(
        [
            [1.0, 2.0, 3.0, 4.0],
            [5.0, 5.0, 5.0, 5.0],
            [0.1, 0.4, 0.2, 0.9],
            [10.0, 12.0, 9.0, 11.0],
            [3.0, 1.0, 2.0, 7.0],
        ],
        index=["a", "const", "b", "c", "d"],
        columns=["s1", "s2", "s3", "s4"],
    )

    result = filter_low_variance_features(df)

    assert result.removed == ["const"]
    assert result.n_removed == 1
    assert result.n_kept == 4
    assert list(result.matrix.index) == ["a", "b", "c", "d"]
    assert list(result.matrix.columns) == ["s1", "s2", "s3", "s4"]


def test_filter_partitions_rows_by_threshold():
    df = _random_matrix(p=30)
    df.iloc[::3] = df.iloc[::3] * 1e-5
    threshold = 0.001

    result = filter_low_variance_features(df, threshold=threshold)

    kept_std = feature_standard_deviations(result.matrix)
    removed_std = result.std.loc[result.removed]
    assert (kept_std >= threshold).all()
    assert (removed_std < threshold).all()
    assert result.n_kept + result.n_removed == df.shape[0]


def test_filter_keeps_row_exactly_at_threshold():
    df = pd.DataFrame([[0.0, 2.0], [0.0, 0.0]], index=["edge", "const"])
    threshold = float(feature_standard_deviations(df)["edge"])

    result = filter_low_variance_features(df, threshold=threshold)

    assert list(result.matrix.index) == ["edge"]


def test_filter_all_removed_raises():
    df = pd.DataFrame([[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]])
    with pytest.raises(EmptyResultError, match="below"):
        filter_low_variance_features(df)


def test_filter_requires_two_samples():
    df = pd.DataFrame([[1.0], [2.0]])
    with pytest.raises(EmptyResultError, match="2 samples"):
        filter_low_variance_features(df)


def test_filter_rejects_missing_values():
    df = pd.DataFrame([[1.0, np.nan, 3.0], [1.0, 2.0, 3.0]])
    with pytest.raises(InvalidMatrixError):
        filter_low_variance_features(df)


def test_filter_accepts_numpy_array():
    arr = np.array([[1.0, 2.0, 3.0], [4.0, 4.0, 4.0]])
    result = filter_low_variance_features(arr)
    assert result.removed == [1]
    assert result.matrix.shape == (1, 3)


def test_compute_pca_sdev_sorted_and_non_negative():
    result = compute_pca(_random_matrix())

    assert (result.sdev >= 0).all()
    assert (np.diff(result.sdev) <= 1e-12).all()


def test_compute_pca_ratios_sum_to_one():
    result = compute_pca(_random_matrix())

    total = sum(explained_variance_ratio(result, i) for i in range(result.n_components))
    assert np.isclose(total, 1.0, rtol=1e-9)
    assert np.isclose(result.explained_variance_ratio.sum(), 1.0, rtol=1e-9)
    assert np.isclose(cumulative_variance_ratio(result).iloc[-1], 1.0, rtol=1e-9)


def test_compute_pca_matches_correlation_eigenvalues():
    df = _random_matrix(p=4, n=12)

    result = compute_pca(df)

    eigvals = np.sort(np.linalg.eigvalsh(np.corrcoef(df.to_numpy())))[::-1]
    assert result.n_components == 4
    assert np.allclose(result.sdev ** 2, eigvals)
    assert np.allclose(result.scores.var(axis=0, ddof=1).to_numpy(), result.sdev ** 2)


def test_compute_pca_standardization_parameters():
    df = _random_matrix(p=6, n=8)

    result = compute_pca(df)

    assert np.allclose(result.center.to_numpy(), df.mean(axis=1).to_numpy())
    assert np.allclose(result.scale.to_numpy(), df.std(axis=1, ddof=1).to_numpy())
    assert list(result.rotation.index) == list(df.index)
    assert list(result.scores.index) == list(df.columns)


def test_compute_pca_loadings_are_orthonormal():
    result = compute_pca(_random_matrix(p=6, n=12))

    v = result.rotation.to_numpy()
    assert np.allclose(v.T @ v, np.eye(v.shape[1]))


def test_compute_pca_without_scaling():
    df = _random_matrix(p=6, n=12)

    result = compute_pca(df, standardize=False)

    eigvals = np.sort(np.linalg.eigvalsh(np.cov(df.to_numpy())))[::-1]
    assert result.scale is None
    assert np.allclose(result.sdev ** 2, eigvals[: result.n_components])


def test_compute_pca_is_deterministic():
    df = _random_matrix()

    first = compute_pca(df)
    second = compute_pca(df)

    assert np.allclose(first.sdev, second.sdev)
    assert np.allclose(first.rotation.to_numpy(), second.rotation.to_numpy())
    assert np.allclose(first.scores.to_numpy(), second.scores.to_numpy())


def test_compute_pca_component_count_bound():
    wide = compute_pca(_random_matrix(p=20, n=10))
    tall = compute_pca(_random_matrix(p=3, n=10))

    assert wide.n_components == 9
    assert tall.n_components == 3
    assert list(wide.scores.columns) == [f"PC{i}" for i in range(1, 10)]


def test_compute_pca_accepts_filter_result():
    filtered = filter_low_variance_features(_random_matrix())
    result = compute_pca(filtered)
    assert result.rotation.shape[0] == filtered.n_kept


def test_separable_groups_split_on_pc1():
    df = _separable_matrix()

    result = compute_pca(filter_low_variance_features(df).matrix)

    assert explained_variance_ratio(result, 0) > 0.5
    pc1 = projected_coordinates(result, [0]).iloc[:, 0]
    group_a, group_b = pc1.iloc[:5], pc1.iloc[5:]
    assert group_a.max() < group_b.min() or group_b.max() < group_a.min()


def test_explained_variance_ratio_out_of_range():
    result = compute_pca(_random_matrix(p=20, n=10))

    with pytest.raises(IndexOutOfRangeError):
        explained_variance_ratio(result, 100)
    with pytest.raises(IndexOutOfRangeError):
        explained_variance_ratio(result, 9)
    with pytest.raises(IndexOutOfRangeError):
        explained_variance_ratio(result, -1)


def test_explained_variance_ratio_accepts_numpy_int():
    result = compute_pca(_random_matrix())
    assert explained_variance_ratio(result, np.int64(0)) == explained_variance_ratio(result, 0)


def test_projected_coordinates_order_and_bounds():
    df = _random_matrix()
    result = compute_pca(df)

    coords = projected_coordinates(result, [1, 0])

    assert list(coords.columns) == ["PC2", "PC1"]
    assert list(coords.index) == list(df.columns)
    assert np.allclose(coords["PC1"], result.scores["PC1"])
    with pytest.raises(IndexOutOfRangeError):
        projected_coordinates(result, [0, 42])


def test_compute_pca_single_sample_is_degenerate():
    df = pd.DataFrame([[1.0], [2.0], [3.0]])
    with pytest.raises(DegenerateInputError):
        compute_pca(df)


def test_compute_pca_constant_feature_cannot_be_scaled():
    df = pd.DataFrame([[1.0, 2.0, 3.0], [4.0, 4.0, 4.0]], index=["g1", "flat"])
    with pytest.raises(DegenerateInputError, match="constant"):
        compute_pca(df)


def test_compute_pca_no_variance_is_degenerate():
    df = pd.DataFrame([[1.0, 1.0, 1.0], [4.0, 4.0, 4.0]])
    with pytest.raises(DegenerateInputError, match="no variance"):
        compute_pca(df, standardize=False)


def test_scipy_pca_variance_threshold_components():
    df = _separable_matrix().T

    pca = SciPyPCA(n_components=0.5)
    scores = pca.fit_transform(df)

    assert pca.n_components_ == 1
    assert scores.shape == (10, 1)
    assert pca.explained_variance_ratio_[0] > 0.5


def test_standard_scaler_ddof():
    X = np.array([[1.0, 10.0], [2.0, 20.0], [3.0, 30.0]])

    sample = StandardScaler().fit(X)
    population = StandardScaler(ddof=0).fit(X)

    assert np.allclose(sample.scale_, np.std(X, axis=0, ddof=1))
    assert np.allclose(population.scale_, np.std(X, axis=0, ddof=0))
    assert np.allclose(sample.inverse_transform(sample.transform(X)), X)
