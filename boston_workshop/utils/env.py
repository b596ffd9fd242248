# boston_workshop/utils/env.py
from dotenv import load_dotenv
from pathlib import Path
import os

def load_env():
    """
    Load variables from a local .env file (if any) and return the
    settings the workshop reads from the environment.
    """
    dotenv_path = Path(".") / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path)
        print("[INFO] Loaded .env file.")
    else:
        print("[INFO] No .env file found, using system environment.")

    return {
        "SEED": os.getenv("SEED"),
        "N_JOBS": os.getenv("N_JOBS"),
        "REPORTS_DIR": os.getenv("REPORTS_DIR"),
        "EXPERIMENT_NAME": os.getenv("EXPERIMENT_NAME"),
        "MLFLOW_TRACKING_URI": os.getenv("MLFLOW_TRACKING_URI"),
    }
