import numpy as np
import pandas as pd
import pytest

from boston_workshop.errors import ConfigIncompatibleError, DataShapeError
from boston_workshop.models import MODEL_REGISTRY, get_family
from boston_workshop.models.neural_net_model import NeuralNetFamily
from boston_workshop.models.random_forest_model import BaggedTreesFamily, RandomForestFamily
from boston_workshop.models.xgboost_model import GradientBoostedTreesFamily
from boston_workshop.pipelines.resampling import ResamplingSpec, WorkerPool

FAST_CV = ResamplingSpec(method="cv", n_splits=3)

XGB_SMALL = {
    "n_estimators": [5],
    "max_depth": [2],
    "learning_rate": [0.3],
}


@pytest.fixture
def rf():
    return RandomForestFamily(model_params={"n_estimators": 5})


def test_single_point_grid_with_ten_folds_three_repeats(rf, regression_df):
    result = rf.fit(
        regression_df,
        "y",
        {"max_features": ["sqrt"]},
        ResamplingSpec(method="repeatedcv", n_splits=10, n_repeats=3),
        seed=0,
    )

    assert len(result.candidates) == 1
    assert result.best_params == {"max_features": "sqrt"}
    assert len(result.resamples) == 30
    assert result.resamples["resample"].iloc[0] == "Fold01.Rep1"
    assert result.resamples["resample"].iloc[-1] == "Fold10.Rep3"
    assert result.n_samples == 90 and result.n_features == 4


def test_grid_search_picks_lowest_mean_rmse(rf, regression_df):
    result = rf.fit(regression_df, "y", {"max_features": [1, 2, 4]}, FAST_CV, seed=0)

    means = {c.params["max_features"]: c.mean("rmse") for c in result.candidates}
    assert result.best_params["max_features"] == min(means, key=means.get)
    assert result.model.params["max_features"] == result.best_params["max_features"]
    assert len(result.results_table()) == 3


def test_r2_metric_picks_highest(rf, regression_df):
    spec = ResamplingSpec(method="cv", n_splits=3, metric="r2")
    result = rf.fit(regression_df, "y", {"max_features": [1, 4]}, spec, seed=0)

    r2 = {c.params["max_features"]: c.mean("r2") for c in result.candidates}
    assert result.best_params["max_features"] == max(r2, key=r2.get)


def test_default_grid_spans_one_to_all_predictors(regression_df):
    family = RandomForestFamily()
    assert family.default_grid(4) == {"max_features": [2, 3, 4]}
    assert family.default_grid(13) == {"max_features": [2, 7, 13]}


def test_out_of_bag_resampling_gives_one_estimate(regression_df):
    family = RandomForestFamily()
    result = family.fit(
        regression_df,
        "y",
        resampling=ResamplingSpec(method="oob", search="random", n_iter=3),
        fixed_params={"n_estimators": 25},
        seed=0,
    )

    assert len(result.candidates) == 3
    assert all(len(c.resamples) == 1 for c in result.candidates)
    assert result.resamples["resample"].tolist() == ["OOB"]
    assert result.model.params["n_estimators"] == 25
    assert np.isfinite(result.resamples["rmse"]).all()


def test_random_search_is_reproducible(rf, regression_df):
    spec = ResamplingSpec(method="cv", n_splits=3, search="random", n_iter=2)
    a = rf.fit(regression_df, "y", resampling=spec, seed=11)
    b = rf.fit(regression_df, "y", resampling=spec, seed=11)

    assert [c.params for c in a.candidates] == [c.params for c in b.candidates]
    pd.testing.assert_frame_equal(a.resamples, b.resamples)


def test_oob_is_rejected_for_boosting(regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        GradientBoostedTreesFamily().fit(regression_df, "y", XGB_SMALL, ResamplingSpec(method="oob"))
    assert exc.value.field == "method"


def test_unknown_hyperparameter_is_named(rf, regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        rf.fit(regression_df, "y", {"mtry": [2]}, FAST_CV)
    assert exc.value.field == "mtry"


def test_max_features_out_of_range(rf, regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        rf.fit(regression_df, "y", {"max_features": [9]}, FAST_CV)
    assert exc.value.field == "max_features"


@pytest.mark.parametrize(
    "grid, field",
    [
        ({"criterion": ["bogus"]}, "criterion"),
        ({"min_samples_leaf": [0]}, "min_samples_leaf"),
        ({"max_features": [2], "min_samples_split": [1]}, "min_samples_split"),
    ],
)
def test_invalid_hyperparameter_values_are_named(rf, regression_df, grid, field):
    with pytest.raises(ConfigIncompatibleError) as exc:
        rf.fit(regression_df, "y", grid, FAST_CV)
    assert exc.value.field == field


def test_invalid_network_setting_is_named(regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        NeuralNetFamily().fit(regression_df, "y", {"activation": ["sigmoid"]}, FAST_CV)
    assert exc.value.field == "activation"


def test_fixed_value_also_in_grid_is_rejected(rf, regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        rf.fit(regression_df, "y", {"max_features": [2, 3]}, FAST_CV, fixed_params={"max_features": 4})
    assert exc.value.field == "max_features"


def test_swept_parameter_also_in_grid_is_rejected(rf, regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        rf.sweep(regression_df, "y", "max_features", [2, 3], {"max_features": [4]}, FAST_CV)
    assert exc.value.field == "max_features"


def test_bagging_uses_all_predictors_and_refuses_max_features(regression_df):
    family = BaggedTreesFamily(model_params={"n_estimators": 5})
    result = family.fit(regression_df, "y", resampling=FAST_CV, seed=0)

    assert result.best_params == {}
    assert result.model.estimator.max_features is None
    with pytest.raises(ConfigIncompatibleError) as exc:
        family.fit(regression_df, "y", {"max_features": [2]}, FAST_CV)
    assert exc.value.field == "max_features"


def test_unencoded_categorical_column_is_named(rf, regression_df):
    df = regression_df.assign(town=["a", "b", "c"] * 30)
    with pytest.raises(ConfigIncompatibleError) as exc:
        rf.fit(df, "y", resampling=FAST_CV)
    assert exc.value.field == "town"


def test_missing_target_is_a_data_shape_error(rf, regression_df):
    with pytest.raises(DataShapeError):
        rf.fit(regression_df, "medv", resampling=FAST_CV)


def test_same_seed_same_resamples(rf, regression_df):
    a = rf.fit(regression_df, "y", {"max_features": [2]}, FAST_CV, seed=5)
    b = rf.fit(regression_df, "y", {"max_features": [2]}, FAST_CV, seed=5)
    pd.testing.assert_frame_equal(a.resamples, b.resamples)
    np.testing.assert_allclose(a.model.predict(regression_df), b.model.predict(regression_df))


@pytest.mark.parametrize("backend", ["threading", "loky"])
def test_pool_gives_the_same_results_as_sequential(rf, regression_df, backend):
    sequential = rf.fit(regression_df, "y", {"max_features": [2, 3]}, FAST_CV, seed=2)
    with WorkerPool(n_jobs=2, backend=backend) as pool:
        pooled = rf.fit(regression_df, "y", {"max_features": [2, 3]}, FAST_CV, seed=2, pool=pool)

    for a, b in zip(sequential.candidates, pooled.candidates):
        pd.testing.assert_frame_equal(a.resamples, b.resamples)
    assert sequential.best_params == pooled.best_params


def test_sweep_keeps_sweep_order_and_one_fit_per_value(rf, regression_df):
    result_set = rf.sweep(regression_df, "y", "n_estimators", [8, 3, 5], {"max_features": [2]}, FAST_CV, seed=0)

    assert result_set.labels == ["8", "3", "5"]
    assert len(result_set) == 3
    for label, result in result_set.items():
        assert result.model.params["n_estimators"] == int(label)
        assert len(result.resamples) == 3
    frame = result_set.metric_frame("rmse")
    assert list(frame.columns) == ["8", "3", "5"]
    assert frame.shape == (3, 3)


def test_gradient_boosting_fit_and_importance(regression_df):
    result = GradientBoostedTreesFamily().fit(regression_df, "y", XGB_SMALL, FAST_CV, seed=0)

    preds = result.model.predict(regression_df)
    assert preds.shape == (90,)
    importance = result.model.feature_importance()
    assert list(importance.index)[0] == "x1"
    assert importance.max() == pytest.approx(100.0)


def test_gradient_boosting_rejects_out_of_range_learning_rate(regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        GradientBoostedTreesFamily().fit(regression_df, "y", {"learning_rate": [1.5]}, FAST_CV)
    assert exc.value.field == "learning_rate"


def test_default_boosting_grid_has_108_candidates():
    family = GradientBoostedTreesFamily()
    spec = ResamplingSpec()
    assert len(family.candidates(None, spec, n_features=13, seed=0)) == 108


def test_neural_net_two_hidden_layers(regression_df):
    family = NeuralNetFamily()
    result = family.fit(
        regression_df,
        "y",
        {"hidden_layer_sizes": [[5, 3]]},
        FAST_CV,
        fixed_params={"max_iter": 300},
        seed=0,
    )

    network = NeuralNetFamily.network(result.model.estimator)
    assert network.hidden_layer_sizes == (5, 3)
    assert result.model.feature_importance() is None
    assert len(result.model.loss_curve()) > 0
    assert result.model.predict(regression_df).shape == (90,)


def test_neural_net_rejects_empty_layer(regression_df):
    with pytest.raises(ConfigIncompatibleError) as exc:
        NeuralNetFamily().fit(regression_df, "y", {"hidden_layer_sizes": [[0]]}, FAST_CV)
    assert exc.value.field == "hidden_layer_sizes"


def test_registry_and_unknown_family():
    assert set(MODEL_REGISTRY) == {"bagged_trees", "random_forest", "gradient_boosted_trees", "neural_net"}
    assert isinstance(get_family("random_forest"), RandomForestFamily)
    with pytest.raises(ConfigIncompatibleError) as exc:
        get_family("svm")
    assert exc.value.field == "family"
