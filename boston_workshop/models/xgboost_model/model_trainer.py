# boston_workshop/models/xgboost_model/model_trainer.py
import xgboost as xgb

from boston_workshop.errors import ConfigIncompatibleError
from boston_workshop.models.base import ModelFamily
from .config import MODEL_CONFIG, PARAM_GRID, RANDOM_SPACE, TRAINING_CONFIG

# (lower, upper, lower_inclusive)
_BOUNDS = {
    "learning_rate": (0.0, 1.0, False),
    "subsample": (0.0, 1.0, False),
    "colsample_bytree": (0.0, 1.0, False),
    "gamma": (0.0, None, True),
    "min_child_weight": (0.0, None, True),
    "max_depth": (0, None, True),
    "n_estimators": (1, None, True),
}


class GradientBoostedTreesFamily(ModelFamily):
    """
    Extreme gradient boosting (XGBoost) on regression trees.

    ``learning_rate`` is the shrinkage (eta), ``max_depth`` the depth of each
    tree and ``n_estimators`` the number of boosting rounds.
    """

    name = "gradient_boosted_trees"
    label = "XGBoost"
    training_config = TRAINING_CONFIG

    def make_estimator(self, params, seed, oob=False):
        return xgb.XGBRegressor(**{**MODEL_CONFIG, **params, "random_state": seed})

    def allowed_params(self):
        return set(xgb.XGBRegressor().get_params()) - {"random_state"}

    def default_grid(self, n_features):
        return dict(PARAM_GRID)

    def random_space(self, n_features):
        return dict(RANDOM_SPACE)

    def check_values(self, params, n_features):
        for key, (lower, upper, inclusive) in _BOUNDS.items():
            if key not in params or params[key] is None:
                continue
            value = params[key]
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigIncompatibleError(key, f"Expected a number, got {params[key]!r}")
            too_low = value < lower if inclusive else value <= lower
            too_high = upper is not None and value > upper
            if too_low or too_high:
                raise ConfigIncompatibleError(key, f"Value {params[key]!r} is out of range")

    def importances(self, estimator):
        return estimator.feature_importances_
