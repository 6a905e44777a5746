"""
Musicbox Configuration

Environment-based defaults for the note-to-gesture pipeline.
"""
import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _app_version_from_package() -> str:
    """Read the installed distribution version; fall back for source checkouts."""
    try:
        from importlib.metadata import version
        return version("musicbox")
    except Exception:
        return "0.0.0-unknown"


# Single source of truth for the default tap length (ms).  Referenced by the
# gesture pass, pipeline options and CLI so they all agree.
DEFAULT_PRESS_DURATION_MS: float = 5

# MIDI channel 9 (0-indexed) is the General MIDI percussion channel.
PERCUSSION_CHANNEL: int = 9


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    app_name: str = "musicbox"
    app_version: str = _app_version_from_package()
    debug: bool = False
    log_level: str = "INFO"

    # Gesture emission
    press_duration_ms: float = Field(default=DEFAULT_PRESS_DURATION_MS, gt=0)
    margin_duration_ms: float = Field(default=100, ge=0)  # gap kept between a release and the next press
    max_gesture_size: int = Field(default=19, ge=1)       # touch points the input layer accepts at once
    max_gesture_duration_ms: float = Field(default=10_000, gt=0)

    # Density shaping
    merge_interval_ms: float = Field(default=35, ge=0)    # notes closer than this are pressed together
    max_chord_notes: int = Field(default=9, ge=1)
    random_seed: int = Field(default=74751, ge=0, le=0xFFFFFFFF)

    # Pitch legalization
    wrap_octaves: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _warn_oversized_chords(self) -> "Settings":
        """Warn when chords may hold more notes than one gesture can carry."""
        if self.max_chord_notes > self.max_gesture_size:
            logging.getLogger(__name__).warning(
                "max_chord_notes (%d) exceeds max_gesture_size (%d); "
                "large chords will be split across gestures.",
                self.max_chord_notes,
                self.max_gesture_size,
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="MUSICBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging the same way for the CLI and scripts."""
    current = get_settings()
    resolved = level or ("DEBUG" if current.debug else current.log_level)
    logging.basicConfig(
        level=getattr(logging, resolved.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Convenience access
settings = get_settings()
