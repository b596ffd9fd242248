from scipy.stats import loguniform

MODEL_CONFIG = {
    "hidden_layer_sizes": (5,),
    "activation": "logistic",
    "solver": "adam",
    "alpha": 1e-4,
    "learning_rate_init": 0.01,
    "max_iter": 2000,
}

# caret "neuralnet": one hidden layer of 1, 3 or 5 units
PARAM_GRID = {
    "hidden_layer_sizes": [(1,), (3,), (5,)],
}

RANDOM_SPACE = {
    "hidden_layer_sizes": [(n,) for n in range(2, 21)]
    + [(n, m) for n in range(2, 21, 3) for m in range(2, 21, 3)],
    "alpha": loguniform(1e-5, 1e-1),
}

TRAINING_CONFIG = {
    "method": "repeatedcv",
    "n_splits": 10,
    "n_repeats": 3,
}
