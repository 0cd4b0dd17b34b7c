"""
Configuration models for artifact-sync.

Handles per-project synchronization settings and global settings loaded
from the environment.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _normalize_extension(value: str) -> str:
    value = value.strip().lower()
    if not value:
        raise ValueError('Extension cannot be empty')
    if not value.startswith('.'):
        value = f".{value}"
    return value


# Project state location, relative to the project root
CONFIG_DIR_NAME = ".artifact-sync"
CONFIG_FILE_NAME = "config.json"
SOURCE_INDEX_FILE_NAME = "sources.json"


class SyncConfig(BaseModel):
    """Synchronization settings for one project tree"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Project
    root: Path = Field(default_factory=Path.cwd)

    # Source / artifact pairing
    source_extension: str = ".py"
    artifact_extension: str = ".asset"
    base_classes: List[str] = Field(default_factory=lambda: ["Behaviour"])
    link_field: str = "source_link"

    # Discovery
    ignored_directories: List[str] = Field(default_factory=lambda: [
        '.git', '__pycache__', '.pytest_cache', '.venv', 'venv',
        'node_modules', 'build', 'dist', CONFIG_DIR_NAME
    ])

    # Processing
    debounce_ms: int = Field(default=500, ge=0, le=60000)
    max_workers: int = Field(default=1, ge=1, le=16)

    @field_validator('source_extension', 'artifact_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Extensions are compared lower case with a leading dot"""
        return _normalize_extension(v)

    @field_validator('base_classes')
    @classmethod
    def validate_base_classes(cls, v: List[str]) -> List[str]:
        """Base class names must be non-empty identifiers"""
        cleaned = [name.strip() for name in v if name and name.strip()]
        if not cleaned:
            raise ValueError('At least one base class name is required')
        return cleaned

    @model_validator(mode='after')
    def validate_distinct_extensions(self) -> 'SyncConfig':
        """Artifacts must never be mistaken for sources"""
        if self.source_extension == self.artifact_extension:
            raise ValueError('Source and artifact extensions must differ')
        return self

    def get_config_dir(self) -> Path:
        """Get project configuration directory"""
        return self.root / CONFIG_DIR_NAME

    def get_config_file(self) -> Path:
        """Get project configuration file path"""
        return self.get_config_dir() / CONFIG_FILE_NAME

    def get_source_index_file(self) -> Path:
        """Get the file holding durable source ids"""
        return self.get_config_dir() / SOURCE_INDEX_FILE_NAME

    @property
    def is_initialized(self) -> bool:
        """Check if project configuration has been written"""
        return self.get_config_file().exists()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = self.model_dump()
        data['root'] = str(data['root'])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncConfig':
        """Create from dictionary"""
        if 'root' in data:
            data['root'] = Path(data['root'])
        return cls(**data)


class GlobalSettings(BaseSettings):
    """Global application settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="ARTIFACT_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_to_file: bool = False
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / CONFIG_DIR_NAME / "logs"
    )

    @field_validator('log_level', mode='before')
    @classmethod
    def validate_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    def get_log_file(self) -> Optional[Path]:
        """Get log file path if logging to file is enabled"""
        if not self.log_to_file:
            return None
        self.log_dir.mkdir(parents=True, exist_ok=True)
        return self.log_dir / "artifact-sync.log"
