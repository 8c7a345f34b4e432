import yaml
from pathlib import Path
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    # Allow the ladder table as a mapping: {"720p": {"width": ..., ...}}
    renditions = data.get("renditions")
    if isinstance(renditions, dict):
        data["renditions"] = [{"name": name, **values} for name, values in renditions.items()]

    return AppConfig(**data)
