from .model_trainer import NeuralNetFamily
