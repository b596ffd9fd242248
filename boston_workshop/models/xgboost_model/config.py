# boston_workshop/models/xgboost_model/config.py
from scipy.stats import randint, uniform

MODEL_CONFIG = {
    "objective": "reg:squarederror",
    "n_estimators": 100,
    "learning_rate": 0.3,
    "max_depth": 6,
    "gamma": 0.0,
    "min_child_weight": 1,
    "subsample": 1.0,
    "colsample_bytree": 1.0,
    "eval_metric": "rmse",
    "n_jobs": 1,
}

# default grid of the caret "xgbTree" method
PARAM_GRID = {
    "n_estimators": [50, 100, 150],
    "max_depth": [1, 2, 3],
    "learning_rate": [0.3, 0.4],
    "gamma": [0.0],
    "colsample_bytree": [0.6, 0.8],
    "min_child_weight": [1],
    "subsample": [0.5, 0.75, 1.0],
}

RANDOM_SPACE = {
    "n_estimators": randint(1, 1001),
    "max_depth": randint(1, 11),
    "learning_rate": uniform(0.001, 0.599),
    "gamma": uniform(0.0, 10.0),
    "colsample_bytree": uniform(0.3, 0.4),
    "min_child_weight": randint(0, 21),
    "subsample": uniform(0.25, 0.75),
}

TRAINING_CONFIG = {
    "method": "repeatedcv",
    "n_splits": 10,
    "n_repeats": 3,
}
