"""
Configuration parameters for cellar.
"""

import inspect
from dataclasses import dataclass
from typing import Optional

CELLAR_VERSION = "0.1.0"
DEFAULT_USER_AGENT = f"cellar/{CELLAR_VERSION}"
DEFAULT_API_BASE_URL = "https://api.github.com"
DEFAULT_CACHE_MAX_AGE_SECONDS = 3600


@dataclass
class CellarConfig:
    """
    Configuration parameters
    """

    base_directory: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    api_base_url: str = DEFAULT_API_BASE_URL
    cache_max_age_seconds: int = DEFAULT_CACHE_MAX_AGE_SECONDS
    use_cache: bool = True
    steam_path: Optional[str] = None
    scan_steam: bool = True
    download_directory: Optional[str] = None

    @classmethod
    def from_dict(cls, env: dict):
        """
        Create a CellarConfig instance from a dictionary, ignoring unknown keys
        """
        return cls(**{
            k: v for k, v in env.items()
            if k in inspect.signature(cls).parameters
        })
