from .model_trainer import GradientBoostedTreesFamily
