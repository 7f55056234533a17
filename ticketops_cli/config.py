"""
CLI Configuration

Resolution order: defaults, ``<config_dir>/config.json``, ``.env`` and the
process environment (TICKETOPS_* variables). Later sources win.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Callable, Dict, Optional, Tuple

from dotenv import load_dotenv


DEFAULT_CONFIG_DIR = Path.home() / ".ticketops"


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env var -> (attribute, converter)
ENV_VARS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "TICKETOPS_API_URL": ("api_base_url", str),
    "TICKETOPS_TIMEOUT": ("timeout", float),
    "TICKETOPS_PAGE_SIZE": ("page_size", int),
    "TICKETOPS_VERBOSE": ("verbose", _as_bool),
    "TICKETOPS_CACHE": ("cache_enabled", _as_bool),
}


@dataclass
class CLIConfig:
    api_base_url: str = "http://localhost:8000/api/v1"
    timeout: float = 30
    page_size: int = 20
    verbose: bool = False
    cache_enabled: bool = True
    config_dir: str = field(default_factory=lambda: str(DEFAULT_CONFIG_DIR))

    @property
    def config_file(self) -> Path:
        return Path(self.config_dir) / "config.json"

    @property
    def credentials_file(self) -> Path:
        return Path(self.config_dir) / "credentials.json"

    def update(self, values: Dict[str, Any]) -> None:
        """Apply known keys; unknown keys in an old config file are ignored"""
        known = {f.name for f in fields(self)}
        for key, value in values.items():
            if key in known:
                setattr(self, key, value)

    def load_from_file(self, path: Optional[Path] = None) -> bool:
        path = Path(path or self.config_file)
        if not path.exists():
            return False
        with open(path) as f:
            self.update(json.load(f))
        return True

    def save_to_file(self, path: Optional[Path] = None) -> Path:
        path = Path(path or self.config_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(asdict(self), f, indent=2)
        return path

    def load_from_env(self, environ: Optional[Dict[str, str]] = None) -> None:
        environ = os.environ if environ is None else environ
        for name, (attr, convert) in ENV_VARS.items():
            raw = environ.get(name)
            if raw:
                setattr(self, attr, convert(raw))

    @classmethod
    def load_default(cls) -> "CLIConfig":
        load_dotenv()
        config = cls(config_dir=os.environ.get("TICKETOPS_CONFIG_DIR") or str(DEFAULT_CONFIG_DIR))
        config.load_from_file()
        config.load_from_env()
        return config
