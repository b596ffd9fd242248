from boston_workshop.errors import ConfigIncompatibleError
from boston_workshop.models.neural_net_model import NeuralNetFamily
from boston_workshop.models.random_forest_model import BaggedTreesFamily, RandomForestFamily
from boston_workshop.models.xgboost_model import GradientBoostedTreesFamily

MODEL_REGISTRY = {
    "bagged_trees": BaggedTreesFamily,
    "random_forest": RandomForestFamily,
    "gradient_boosted_trees": GradientBoostedTreesFamily,
    "neural_net": NeuralNetFamily,
}


def get_family(name: str, model_params=None):
    if name not in MODEL_REGISTRY:
        raise ConfigIncompatibleError("family", f"Unsupported model family '{name}'. "
                                                f"Use one of: {list(MODEL_REGISTRY.keys())}")
    return MODEL_REGISTRY[name](model_params=model_params)
