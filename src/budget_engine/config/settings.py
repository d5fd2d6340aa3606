"""
Centralized settings and path configuration for the budget engine.
"""
from pathlib import Path
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class Settings:
    """Engine settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Client honorarium table (client_name, honorario_percent)
    honorarium_table: Optional[Path] = None

    # Categories seeded into empty campaigns and protected from deletion
    base_categories: tuple = ()

    # Names for campaigns/categories synthesized from legacy payloads
    single_campaign_name: str = "Single Campaign"
    film_category_name: str = "Film Production"
    audio_category_name: str = "Audio"

    # Defaults for fields missing from a payload
    default_combination_mode: str = "individual"
    default_honorarium_percent: Decimal = Decimal("0")

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure."""
        root = project_root or get_project_root()

        honorarium_table = root / 'data' / 'client_honorarios.csv'

        return cls(
            project_root=root,
            honorarium_table=honorarium_table if honorarium_table.exists() else None,
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
