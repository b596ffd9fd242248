import numpy as np
from sklearn.ensemble import RandomForestRegressor

from boston_workshop.errors import ConfigIncompatibleError
from boston_workshop.models.base import ModelFamily
from .config import MODEL_CONFIG, TRAINING_CONFIG, TUNE_LENGTH

_MAX_FEATURES_KEYWORDS = ("sqrt", "log2")


def _check_positive_int(params, key, minimum=1):
    if key in params:
        value = params[key]
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < minimum:
            raise ConfigIncompatibleError(key, f"Expected an integer >= {minimum}, got {value!r}")


class RandomForestFamily(ModelFamily):
    """
    Random forest regression: each split considers ``max_features``
    randomly chosen predictors (``mtry``).
    """

    name = "random_forest"
    label = "Random Forest"
    supports_oob = True
    training_config = TRAINING_CONFIG

    def make_estimator(self, params, seed, oob=False):
        settings = {**MODEL_CONFIG, **params, "random_state": seed}
        if oob:
            settings.update({"bootstrap": True, "oob_score": True})
        return RandomForestRegressor(**settings)

    def allowed_params(self):
        return set(RandomForestRegressor().get_params(deep=False)) - {"random_state", "oob_score"}

    def default_grid(self, n_features):
        values = np.linspace(2, n_features, TUNE_LENGTH).astype(int)
        return {"max_features": sorted({int(v) for v in values if 1 <= v <= n_features})}

    def random_space(self, n_features):
        return {"max_features": list(range(1, n_features + 1))}

    def check_values(self, params, n_features):
        _check_positive_int(params, "n_estimators")
        if "max_features" in params:
            self._check_max_features(params["max_features"], n_features)

    @staticmethod
    def _check_max_features(value, n_features):
        if value is None or value in _MAX_FEATURES_KEYWORDS:
            return
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            if not 1 <= value <= n_features:
                raise ConfigIncompatibleError(
                    "max_features", f"{value} is outside [1, {n_features}] for this data"
                )
            return
        if isinstance(value, (float, np.floating)):
            if not 0.0 < value <= 1.0:
                raise ConfigIncompatibleError("max_features", f"Fraction {value} is outside (0, 1]")
            return
        raise ConfigIncompatibleError("max_features", f"Unsupported value {value!r}")

    def importances(self, estimator):
        return estimator.feature_importances_

    def oob_predictions(self, estimator):
        return estimator.oob_prediction_


class BaggedTreesFamily(RandomForestFamily):
    """
    Bagging as the special case of a random forest where every split sees
    all predictors (``mtry = p``).
    """

    name = "bagged_trees"
    label = "Bagged Trees"

    def make_estimator(self, params, seed, oob=False):
        return super().make_estimator({**params, "max_features": None}, seed, oob=oob)

    def allowed_params(self):
        return super().allowed_params() - {"max_features"}

    def default_grid(self, n_features):
        return {}

    def random_space(self, n_features):
        return {"min_samples_leaf": list(range(1, 11))}
