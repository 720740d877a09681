from typing import Sequence

from sklearn.compose import ColumnTransformer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder

from claim_frequency.modeling.config import OTHER_LABEL, OTHER_THRESHOLD
from claim_frequency.modeling.preprocessors.collapse import RareCategoryCollapser
from claim_frequency.modeling.preprocessors.columns import RequiredColumns


def preprocessor(
    categorical: Sequence[str],
    numeric: Sequence[str],
    *,
    threshold: float = OTHER_THRESHOLD,
    other_label: str = OTHER_LABEL,
) -> Pipeline:
    cat_cols = list(categorical)
    num_cols = list(numeric)

    encode = ColumnTransformer(
        transformers=[
            ("cat", OneHotEncoder(
                drop="first",
                handle_unknown="error",
                sparse_output=False,
            ), cat_cols),
            ("num", "passthrough", num_cols),
        ],
        remainder="drop",
        verbose_feature_names_out=True,
    ).set_output(transform="pandas")

    return Pipeline(
        steps=[
            ("check", RequiredColumns(cat_cols, num_cols)),
            ("other", RareCategoryCollapser(cat_cols, threshold=threshold, other_label=other_label)),
            ("encode", encode),
        ]
    )
