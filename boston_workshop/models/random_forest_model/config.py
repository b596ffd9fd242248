MODEL_CONFIG = {
    "n_estimators": 500,
    "max_depth": None,   # grow full trees, as randomForest does
    "min_samples_split": 2,
    "min_samples_leaf": 1,
    "n_jobs": 1,         # folds already run in parallel
}

# number of max_features values tried when no grid is given
TUNE_LENGTH = 3

TRAINING_CONFIG = {
    "method": "repeatedcv",
    "n_splits": 10,
    "n_repeats": 3,
}
