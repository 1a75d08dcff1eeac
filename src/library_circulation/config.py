"""Configuration management for the library circulation service.

Settings are read from the environment (``LIBRARY_`` prefix) and an optional
``.env`` file. Circulation limits that are not per member type live here;
per-member-type loan terms live in the ``system_settings`` table.
"""

from decimal import Decimal
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LibraryConfig(BaseSettings):
    """Service configuration.

    Groups:
    - Server metadata for the REST and tool surfaces
    - Database location
    - Reservation and fine limits
    - Logging and tracing
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="library-circulation",
        description="Service name reported by the tool server and the API",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Service version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    database_url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides database_path when set",
    )

    # === HTTP API ===

    api_host: str = Field(
        default="127.0.0.1",
        description="Bind address for the REST API",
    )

    api_port: int = Field(
        default=8000,
        description="Port for the REST API",
        ge=1024,
        le=65535,
    )

    # === Circulation Limits ===

    max_active_reservations: int = Field(
        default=3,
        description="Maximum simultaneous active reservations per member",
        ge=1,
    )

    reservation_expiry_days: int = Field(
        default=30,
        description="Days a reservation stays active before the expiry sweep",
        ge=1,
    )

    max_outstanding_fines: Decimal = Field(
        default=Decimal("10.00"),
        description="Members owing more than this cannot borrow",
        ge=0,
    )

    lost_book_processing_fee: Decimal = Field(
        default=Decimal("5.00"),
        description="Flat fee added to lost-book fines and to the overdue fine cap",
        ge=0,
    )

    default_book_price: Decimal = Field(
        default=Decimal("25.00"),
        description="Replacement cost used when a book has no price",
        ge=0,
    )

    # === Logging & Tracing ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    environment: str = Field(
        default="development",
        description="Deployment environment name attached to traces",
    )

    logfire_token: str | None = Field(
        default=None,
        description="Logfire write token; traces are only exported when set",
        repr=False,
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: LibraryConfig | None = None


def get_config() -> LibraryConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = LibraryConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
