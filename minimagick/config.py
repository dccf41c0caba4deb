"""Library configuration loaded from environment variables."""

import os
import tempfile
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings:
    """Library settings loaded from environment variables."""

    # Temporary storage
    MINIMAGICK_TEMP_DIR: str = os.getenv("MINIMAGICK_TEMP_DIR") or tempfile.gettempdir()
    MINIMAGICK_TEMP_PREFIX: str = os.getenv("MINIMAGICK_TEMP_PREFIX", "mini_magick")

    # External tool invocation
    MINIMAGICK_CLI_PREFIX: str = os.getenv("MINIMAGICK_CLI_PREFIX", "")  # "", "magick" or "gm"
    MINIMAGICK_USE_SHELL: bool = _env_bool("MINIMAGICK_USE_SHELL")

    # Logging
    MINIMAGICK_LOG_LEVEL: str = os.getenv("MINIMAGICK_LOG_LEVEL", "WARNING")

    # Remote byte sources
    MINIMAGICK_URL_TIMEOUT: float = float(os.getenv("MINIMAGICK_URL_TIMEOUT", "10"))
    MINIMAGICK_MAX_DOWNLOAD_SIZE: int = int(os.getenv("MINIMAGICK_MAX_DOWNLOAD_SIZE", "52428800"))  # 50MB

    @property
    def cli_prefix(self) -> list:
        """Get the command prefix placed before every verb."""
        return self.MINIMAGICK_CLI_PREFIX.split()

    @property
    def temp_dir(self) -> str:
        """Get the temp directory, creating it when it does not exist."""
        os.makedirs(self.MINIMAGICK_TEMP_DIR, exist_ok=True)
        return self.MINIMAGICK_TEMP_DIR


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
