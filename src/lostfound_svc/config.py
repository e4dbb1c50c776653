"""Configuration for the lost and found work request service."""

from __future__ import annotations

from dataclasses import dataclass, field

from .workflow.policy import ApprovalPolicy


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060
    reload: bool = False


@dataclass
class StorageConfig:
    """Where work requests are persisted."""
    # YAML file for requests (None = in-memory only)
    requests_file: str | None = "requests.yaml"
    # YAML file for item records (None = in-memory only)
    items_file: str | None = "items.yaml"
    auto_save: bool = True


@dataclass
class DirectoryConfig:
    """Directory of enterprises, organizations and users."""
    definition_file: str = "directory.yaml"


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    policy: ApprovalPolicy = field(default_factory=ApprovalPolicy)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            server=ServerConfig(**data.get("server", {})),
            storage=StorageConfig(**data.get("storage", {})),
            directory=DirectoryConfig(**data.get("directory", {})),
            policy=ApprovalPolicy.from_dict(data.get("policy") or {}),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)
