import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def expression_matrix():
    """12 genes x 8 samples; 4 'normal' then 4 'tumor', one constant gene."""
    rng = np.random.default_rng(42)
    data = rng.normal(5.0, 1.0, size=(12, 8))
    data[:5, 4:] += 4.0
    data[7] = 3.0
    samples = ["n1", "t1", "n2", "t2", "n3", "t3", "n4", "t4"]
    # interleave columns so the class ordering has something to do
    order = [0, 4, 1, 5, 2, 6, 3, 7]
    return pd.DataFrame(
        data[:, order],
        index=[f"GENE{i}" for i in range(12)],
        columns=samples,
    )


@pytest.fixture
def sample_labels(expression_matrix):
    labels = ["normal" if s.startswith("n") else "tumor" for s in expression_matrix.columns]
    return pd.Series(labels, index=expression_matrix.columns, name="label")
