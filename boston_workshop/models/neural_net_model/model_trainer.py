import numpy as np
from sklearn.compose import TransformedTargetRegressor
from sklearn.neural_network import MLPRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from boston_workshop.errors import ConfigIncompatibleError
from boston_workshop.models.base import ModelFamily
from .config import MODEL_CONFIG, PARAM_GRID, RANDOM_SPACE, TRAINING_CONFIG


def _as_layers(value):
    if isinstance(value, (int, np.integer)):
        return (int(value),)
    return tuple(value)


class NeuralNetFamily(ModelFamily):
    """
    Small feed-forward network (multi-layer perceptron).

    Inputs and target are standardised inside the estimator, so callers pass
    raw columns and get predictions back on the original scale.
    """

    name = "neural_net"
    label = "Neural Network"
    training_config = TRAINING_CONFIG

    def make_estimator(self, params, seed, oob=False):
        settings = {**MODEL_CONFIG, **params, "random_state": seed}
        settings["hidden_layer_sizes"] = _as_layers(settings["hidden_layer_sizes"])
        network = Pipeline(
            steps=[
                ("scaler", StandardScaler()),
                ("regressor", MLPRegressor(**settings)),
            ]
        )
        return TransformedTargetRegressor(regressor=network, transformer=StandardScaler())

    def allowed_params(self):
        return set(MLPRegressor().get_params(deep=False)) - {"random_state"}

    def default_grid(self, n_features):
        return dict(PARAM_GRID)

    def random_space(self, n_features):
        return dict(RANDOM_SPACE)

    def check_values(self, params, n_features):
        if "hidden_layer_sizes" in params:
            try:
                layers = _as_layers(params["hidden_layer_sizes"])
            except TypeError:
                raise ConfigIncompatibleError("hidden_layer_sizes", f"Unsupported value {params['hidden_layer_sizes']!r}")
            if not layers or any(not isinstance(n, (int, np.integer)) or n < 1 for n in layers):
                raise ConfigIncompatibleError("hidden_layer_sizes", f"Layer sizes must be positive integers, got {layers}")
        if "max_iter" in params and int(params["max_iter"]) < 1:
            raise ConfigIncompatibleError("max_iter", "Need at least one iteration")

    def param_owner(self, estimator):
        return estimator.regressor.named_steps["regressor"]

    def search_param_name(self, name):
        return f"regressor__regressor__{name}"

    @staticmethod
    def network(estimator) -> MLPRegressor:
        return estimator.regressor_.named_steps["regressor"]

    def loss_curve(self, estimator):
        return list(getattr(self.network(estimator), "loss_curve_", []) or [])
