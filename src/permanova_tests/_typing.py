"""Shared type aliases for the permanova_tests package."""

from collections.abc import Sequence

import numpy as np
import pandas as pd

# Label-aligned grouping vectors accepted by the public API.
GroupingLike = np.ndarray | pd.Series | Sequence[object] | str
