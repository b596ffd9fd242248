# boston_workshop/main.py
import argparse
import dataclasses

from boston_workshop.pipelines.data_setup import load_params
from boston_workshop.pipelines.experiment_pipelines import run_workshop
from boston_workshop.utils.env import load_env


def build_parser():
    parser = argparse.ArgumentParser(description="Boston Housing ML workshop")
    parser.add_argument("--params", type=str, default="params.yaml")
    parser.add_argument("--experiments", nargs="*", default=None,
                        help="Experiment names to run (default: all in params.yaml)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--n-jobs", type=int, default=None,
                        help="Worker pool size (default: cores - 1)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    env_vars = load_env()
    cfg = load_params(args.params, env=env_vars)
    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.n_jobs is not None:
        overrides["n_jobs"] = args.n_jobs
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)

    outcomes = run_workshop(cfg, experiments=args.experiments)
    failed = [name for name, outcome in outcomes.items() if not outcome.succeeded]
    if failed:
        print(f"[WARN] {len(failed)} experiment(s) failed: {failed}")
    else:
        print("\n[INFO] Workshop executed successfully!")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
