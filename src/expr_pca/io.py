import logging
import os
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidMatrixError

logger = logging.getLogger(__name__)

TAB_SUFFIXES = {".tsv", ".txt", ".tab"}


def _infer_sep(path) -> str:
    suffixes = [s.lower() for s in Path(path).suffixes]
    if suffixes and suffixes[-1] == ".gz":
        suffixes = suffixes[:-1]
    if suffixes and suffixes[-1] in TAB_SUFFIXES:
        return "\t"
    return ","


def read_expression_matrix(path, sep: Optional[str] = None) -> pd.DataFrame:
    """
    Read a features x samples expression table.

    Args:
        path: CSV/TSV file (optionally gzipped). The first column holds the
            feature ids, the header holds the sample names.
        sep: column separator, inferred from the file extension if None.

    Returns:
        DataFrame of floats, features in rows and samples in columns.
    """
    if not os.path.isfile(path):
        raise InvalidMatrixError(f"Expression matrix not found: {path}")
    sep = sep or _infer_sep(path)
    try:
        # read_csv renames duplicated headers, so check the raw header first
        header = pd.read_csv(path, sep=sep, header=None, nrows=1, dtype=str).iloc[0, 1:]
        df = pd.read_csv(path, sep=sep, index_col=0)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InvalidMatrixError(f"Could not parse {path}: {e}") from e

    if header.duplicated().any():
        dupes = header[header.duplicated()].tolist()
        raise InvalidMatrixError(f"Duplicate sample names in {path}: {dupes}")
    if df.empty:
        raise InvalidMatrixError(f"Expression matrix {path} is empty")

    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise InvalidMatrixError(f"Non-numeric sample column(s) in {path}: {non_numeric[:10]}")
    df = df.astype(float)

    n_missing = int((~np.isfinite(df.to_numpy())).sum())
    if n_missing:
        raise InvalidMatrixError(f"Expression matrix {path} has {n_missing} missing or infinite value(s)")

    df.columns = df.columns.astype(str)
    logger.info(f"Loaded {df.shape[0]} features x {df.shape[1]} samples from {path}")
    return df


def read_labels(path, samples: Optional[Sequence[str]] = None, sep: Optional[str] = None) -> pd.Series:
    """
    Read sample class labels.

    Two layouts are accepted: a table whose first two columns are sample and
    label, with a header row, or one label per line without a header, in the
    same order as the matrix samples.
    When ``samples`` is given the labels are returned in that order.
    """
    if not os.path.isfile(path):
        raise InvalidMatrixError(f"Labels file not found: {path}")
    sep = sep or _infer_sep(path)
    try:
        df = pd.read_csv(path, sep=sep, dtype=str, header=None)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InvalidMatrixError(f"Could not parse {path}: {e}") from e

    if df.shape[1] == 1:
        labels = df.iloc[:, 0].str.strip()
        if samples is not None:
            if len(labels) != len(samples):
                raise InvalidMatrixError(
                    f"{path} has {len(labels)} label(s) but the matrix has {len(samples)} sample(s)"
                )
            labels.index = list(samples)
    elif df.shape[1] >= 2:
        df = df.iloc[1:]  # header row
        labels = pd.Series(df.iloc[:, 1].values, index=df.iloc[:, 0].values)
        if labels.index.duplicated().any():
            raise InvalidMatrixError(f"Duplicate sample names in {path}")
        if samples is not None:
            missing = [s for s in samples if s not in labels.index]
            if missing:
                raise InvalidMatrixError(f"No label for sample(s) {missing[:10]} in {path}")
            labels = labels.loc[list(samples)]
    else:
        raise InvalidMatrixError(f"Labels file {path} has no columns")

    if labels.isna().any():
        raise InvalidMatrixError(f"Labels file {path} has empty labels")
    labels.name = "label"
    return labels
