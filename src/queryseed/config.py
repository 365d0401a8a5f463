"""
Configuration management for queryseed.

Loads and validates configuration from queryseed.toml files using Pydantic.
Environment variables prefixed with ``QUERYSEED_`` override file values
(nested keys use ``__``, e.g. ``QUERYSEED_GENERATION__MAX_ATTEMPTS=5``).
"""

from __future__ import annotations

import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_FILENAME = "queryseed.toml"


class DatabaseConfig(BaseSettings):
    """Database connection configuration."""

    model_config = SettingsConfigDict(env_prefix="QUERYSEED_DATABASE_")

    url: str | None = Field(default=None, description="PostgreSQL connection URL")
    database_type: str = Field(
        default="postgresql",
        description="SQL dialect: mysql, postgresql, sqlserver or oracle",
    )
    schema_name: str = Field(default="public", description="Schema to introspect")


class GenerationConfig(BaseSettings):
    """Generation loop configuration."""

    model_config = SettingsConfigDict(env_prefix="QUERYSEED_GENERATION_")

    max_attempts: int = Field(default=3, ge=1, description="Attempts to reach the desired count")
    max_constraint_attempts: int = Field(
        default=10, ge=1, description="Proposals per column before the row is discarded"
    )
    use_oracle: bool = Field(default=True, description="Consult the configured value oracle")
    random_seed: int | None = Field(default=None, description="Seed for reproducible values")
    locale: str = Field(default="en_US", description="Faker locale")
    verify_query: bool = Field(
        default=False, description="Run the query after generation and compare the count"
    )


class OracleConfig(BaseSettings):
    """Value oracle configuration."""

    model_config = SettingsConfigDict(env_prefix="QUERYSEED_ORACLE_")

    name: str | None = Field(default=None, description="Registered oracle name")
    call_budget: int | None = Field(default=100, ge=0, description="Oracle calls per run")
    min_interval_seconds: float = Field(
        default=0.0, ge=0.0, description="Minimum seconds between oracle calls"
    )


class OutputConfig(BaseSettings):
    """Script output configuration."""

    model_config = SettingsConfigDict(env_prefix="QUERYSEED_OUTPUT_")

    output_dir: str = Field(default="seeds", description="Directory for generated SQL scripts")
    include_comments: bool = Field(
        default=True, description="Write a header comment with the source query"
    )


class Config(BaseSettings):
    """Main configuration for queryseed."""

    model_config = SettingsConfigDict(env_prefix="QUERYSEED_", env_nested_delimiter="__")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats values loaded from queryseed.toml
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_toml(cls, path: Path | str) -> Config:
        """
        Load configuration from TOML file.

        Args:
            path: Path to queryseed.toml file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        return cls(**data)

    @classmethod
    def find_and_load(cls, start_dir: Path | None = None) -> Config:
        """
        Find and load configuration from queryseed.toml.

        Searches for queryseed.toml starting from start_dir and walking up
        parent directories until found or reaching filesystem root.

        Args:
            start_dir: Directory to start search (defaults to current directory)

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If no config file found
        """
        if start_dir is None:
            start_dir = Path.cwd()

        current = Path(start_dir).resolve()

        # Walk up directory tree
        while True:
            config_path = current / CONFIG_FILENAME
            if config_path.exists():
                return cls.from_toml(config_path)

            parent = current.parent
            if parent == current:
                break
            current = parent

        raise FileNotFoundError(
            f"No {CONFIG_FILENAME} found in {start_dir} or parent directories. "
            f"Run 'queryseed init' to create one."
        )

    def to_toml(self, path: Path | str) -> None:
        """
        Write configuration to TOML file.

        Unset optional values are written as comments.

        Args:
            path: Path to write queryseed.toml
        """
        config_path = Path(path)

        def line(key: str, value: object) -> str:
            if value is None:
                return f"# {key} ="
            if isinstance(value, bool):
                return f"{key} = {str(value).lower()}"
            if isinstance(value, (int, float)):
                return f"{key} = {value}"
            return f'{key} = "{value}"'

        # Build TOML content manually for better formatting
        toml_content = "\n".join(
            [
                "# queryseed configuration",
                "",
                "[database]",
                line("url", self.database.url),
                line("database_type", self.database.database_type),
                line("schema_name", self.database.schema_name),
                "",
                "[generation]",
                line("max_attempts", self.generation.max_attempts),
                line("max_constraint_attempts", self.generation.max_constraint_attempts),
                line("use_oracle", self.generation.use_oracle),
                line("random_seed", self.generation.random_seed),
                line("locale", self.generation.locale),
                line("verify_query", self.generation.verify_query),
                "",
                "[oracle]",
                line("name", self.oracle.name),
                line("call_budget", self.oracle.call_budget),
                line("min_interval_seconds", self.oracle.min_interval_seconds),
                "",
                "[output]",
                line("output_dir", self.output.output_dir),
                line("include_comments", self.output.include_comments),
                "",
            ]
        )

        config_path.write_text(toml_content)

    def get_output_dir(self) -> Path:
        """Get the output directory as a Path object."""
        return Path(self.output.output_dir)
