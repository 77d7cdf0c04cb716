class ExprPCAError(Exception):
    """Base class for errors raised by expr_pca."""


class EmptyResultError(ExprPCAError, ValueError):
    """Variance filtering left no features, or there are too few samples."""


class DegenerateInputError(ExprPCAError, ValueError):
    """The decomposition cannot extract any component from the input."""


class IndexOutOfRangeError(ExprPCAError, IndexError):
    """A component index beyond what was computed."""


class InvalidMatrixError(ExprPCAError, ValueError):
    """Input files or matrices that cannot be used as a feature matrix."""
