"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MAPGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Mesh
    map_size: float = Field(default=1000.0, gt=0, description="Width and height of the map area")
    mesh_spacing: float = Field(default=5.0, gt=0, description="Approximate distance between regions")
    mesh_seed: int = Field(default=12345, description="Seed for region placement")

    # World generation
    default_seed: int = Field(default=187, description="Seed for noise and peaks")
    peak_spacing: float = Field(default=0.07, gt=0, description="Peak grid spacing in normalized units")
    pivot_divisor: int = Field(default=5, ge=1, description="Queue fraction examined per drainage step")
    min_river_flow: float = Field(default=15.0, ge=0, description="Flow above which a triangle carries a river")


settings = Settings()
