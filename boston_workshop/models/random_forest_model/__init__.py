from .model_trainer import BaggedTreesFamily, RandomForestFamily
