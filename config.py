"""
============================================================================
NETFLIX INSIGHTS - Configuration Manager
============================================================================
This module loads and validates all configuration from .env file.
Provides type-safe access to settings throughout the pipeline.

🔧 USAGE:
    from config import config

    # Access settings with autocomplete and type checking
    database_url = config.database.database_url
    titles_csv = config.paths.titles_csv
    batch_size = config.processing.batch_size

🔧 CUSTOMIZE:
    - Add new settings in the appropriate Config class section
    - Update validation logic in validators as needed
    - Modify default values to match your environment

📝 FEATURES:
    - Automatic .env loading
    - Type validation with Pydantic
    - Helpful error messages for missing/invalid settings
    - Organized by functional area
    - Logging setup shared by every command-line entry point
============================================================================
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv


# ============================================================================
# FIND AND LOAD .env FILE
# ============================================================================
# This searches for .env file starting from current directory up to project root

def find_dotenv() -> Optional[Path]:
    """
    Find .env file by searching up the directory tree.

    Returns:
        Path to .env file if found, None otherwise
    """
    current = Path.cwd()

    # Search up to 5 levels up
    for _ in range(5):
        env_file = current / ".env"
        if env_file.exists():
            return env_file

        # Stop at root directory
        if current.parent == current:
            break

        current = current.parent

    return None


# Load environment variables
env_path = find_dotenv()
if env_path:
    load_dotenv(env_path)
    print(f"✅ Loaded environment from: {env_path}")
else:
    print("⚠️  No .env file found. Using environment variables or defaults.")


# ============================================================================
# DATABASE CONFIGURATION
# ============================================================================
# Settings for database connections (SQLite, PostgreSQL)

class DatabaseConfig(BaseModel):
    """
    Database connection and configuration.

    🔧 CUSTOMIZE: Point DATABASE_URL at PostgreSQL for a shared warehouse
    """

    database_url: str = Field(
        default="sqlite:///data/netflix.db",
        description="Database connection URL"
    )

    echo: bool = Field(
        default=False,
        description="Echo SQL queries (useful for debugging)"
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Reject an empty connection URL."""
        if not v.strip():
            raise ValueError("database_url must not be empty")
        return v.strip()

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite."""
        return self.database_url.startswith('sqlite')

    @property
    def is_postgresql(self) -> bool:
        """Check if using PostgreSQL."""
        return self.database_url.startswith('postgresql')

    @property
    def database_path(self) -> Optional[Path]:
        """Get database file path for SQLite (None for in-memory databases)."""
        if self.is_sqlite:
            # Extract path from sqlite:///path/to/db.db
            path_str = self.database_url.replace('sqlite:///', '', 1)
            if not path_str or path_str == self.database_url or path_str == ':memory:':
                return None
            return Path(path_str)
        return None

    class Config:
        """Pydantic configuration."""
        extra = 'ignore'


# ============================================================================
# PATHS CONFIGURATION
# ============================================================================
# File and directory paths for data, logs, reports

class PathsConfig(BaseModel):
    """
    Project directory structure and file paths.

    🔧 CUSTOMIZE: Adjust paths to match your preferred structure
    """

    # Base directories
    data_dir: Path = Field(
        default=Path("./data"),
        description="Main data directory"
    )
    raw_data_dir: Path = Field(
        default=Path("./data/raw"),
        description="Raw data (netflix_titles.csv)"
    )
    processed_data_dir: Path = Field(
        default=Path("./data/processed"),
        description="Processed data"
    )
    reports_dir: Path = Field(
        default=Path("./data/reports"),
        description="Report exports and charts"
    )
    logs_dir: Path = Field(
        default=Path("./data/logs"),
        description="Application logs"
    )

    # Input files
    titles_csv: Path = Field(
        default=Path("./data/raw/netflix_titles.csv"),
        description="Netflix titles dataset"
    )

    @model_validator(mode='after')
    def create_directories(self) -> 'PathsConfig':
        """
        Create directories if they don't exist.
        """
        directories = [
            self.data_dir,
            self.raw_data_dir,
            self.processed_data_dir,
            self.reports_dir,
            self.logs_dir,
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        return self

    class Config:
        """Pydantic configuration."""
        extra = 'ignore'


# ============================================================================
# PROCESSING CONFIGURATION
# ============================================================================
# Settings for loading and cleaning

class ProcessingConfig(BaseModel):
    """
    Data loading and cleaning settings.

    🔧 CUSTOMIZE: Adjust for your hardware and cleaning policy
    """

    # Batch processing
    batch_size: int = Field(
        default=5000,
        ge=1,
        le=100000,
        description="CSV rows per insert batch"
    )

    # Cleaning rules
    multi_value_delimiter: str = Field(
        default=",",
        min_length=1,
        description="Delimiter of listed_in, country and director fields"
    )
    missing_country_sentinel: Optional[str] = Field(
        default="Not Given",
        description="Country for titles with no country and no director lookup (empty = drop)"
    )

    # Export settings
    export_format: str = Field(
        default="csv",
        description="Report export format: csv or json"
    )

    @field_validator('missing_country_sentinel')
    @classmethod
    def validate_sentinel(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank sentinel as 'drop titles without a country'."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator('export_format')
    @classmethod
    def validate_export_format(cls, v: str) -> str:
        """Validate export format is supported."""
        allowed = ['csv', 'json']
        if v.lower() not in allowed:
            raise ValueError(f"export_format must be one of {allowed}, got '{v}'")
        return v.lower()

    class Config:
        """Pydantic configuration."""
        extra = 'ignore'


# ============================================================================
# REPORT CONFIGURATION
# ============================================================================

class ReportConfig(BaseModel):
    """
    Default parameters of the reporting queries.
    """

    top_n: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Rows kept by top-K reports"
    )
    genre: str = Field(
        default="Comedies",
        description="Genre used by top_countries_for_genre"
    )

    class Config:
        """Pydantic configuration."""
        extra = 'ignore'


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================
# Settings for application logging

class LoggingConfig(BaseModel):
    """
    Logging configuration.

    🔧 CUSTOMIZE: Adjust log levels and formats
    """

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    log_file: Path = Field(
        default=Path("./data/logs/netflix_insights.log"),
        description="Log file path"
    )

    # Console logging
    console_output: bool = Field(
        default=False,
        description="Also print log records to the console"
    )

    # Log format
    log_format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format"
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        allowed = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v_upper

    class Config:
        """Pydantic configuration."""
        extra = 'ignore'


# ============================================================================
# MAIN CONFIGURATION
# ============================================================================
# Central configuration object combining all settings

class Config(BaseModel):
    """
    Main configuration class combining all settings.

    🔧 USAGE:
        from config import config

        # Access nested settings
        database_url = config.database.database_url
        reports_dir = config.paths.reports_dir
        top_n = config.report.top_n
    """

    # Configuration sections
    database: DatabaseConfig
    paths: PathsConfig
    processing: ProcessingConfig
    report: ReportConfig
    logging: LoggingConfig

    # Environment
    environment: str = Field(
        default="development",
        description="Environment: development, production, testing"
    )

    # Project metadata
    project_name: str = Field(
        default="Netflix Insights",
        description="Project name"
    )
    version: str = Field(
        default="0.1.0",
        description="Project version"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() == "production"

    def print_summary(self):
        """
        Print configuration summary.

        🔧 USAGE: Call this to verify your configuration loaded correctly
            from config import config
            config.print_summary()
        """
        print("\n" + "="*70)
        print(f"🎬 {self.project_name} v{self.version} - Configuration Summary")
        print("="*70)

        print(f"\n📍 Environment: {self.environment.upper()}")
        print(f"📂 Data Directory: {self.paths.data_dir.absolute()}")
        print(f"📊 Titles CSV: {self.paths.titles_csv.absolute()}")

        print("\n💾 Database:")
        print(f"  • Type: {'SQLite' if self.database.is_sqlite else 'PostgreSQL'}")
        print(f"  • URL: {self.database.database_url}")

        print("\n⚡ Processing:")
        print(f"  • Batch Size: {self.processing.batch_size}")
        print(f"  • Delimiter: '{self.processing.multi_value_delimiter}'")
        print(f"  • Missing Country: {self.processing.missing_country_sentinel or 'dropped'}")
        print(f"  • Export Format: {self.processing.export_format.upper()}")

        print("\n📈 Reports:")
        print(f"  • Top N: {self.report.top_n}")
        print(f"  • Genre: {self.report.genre}")

        print("\n📝 Logging:")
        print(f"  • Level: {self.logging.log_level}")
        print(f"  • File: {self.logging.log_file.absolute()}")

        print("\n" + "="*70 + "\n")

    class Config:
        """Pydantic configuration."""
        extra = 'ignore'


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(logging_config: LoggingConfig) -> logging.Logger:
    """
    Configure the root logger from LoggingConfig.

    Safe to call more than once: handlers installed by a previous call
    are replaced, never duplicated.

    Returns:
        The configured root logger
    """
    root = logging.getLogger()
    root.setLevel(logging_config.log_level)

    for handler in list(root.handlers):
        if getattr(handler, '_netflix_insights', False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(logging_config.log_format, logging_config.date_format)

    logging_config.log_file.parent.mkdir(parents=True, exist_ok=True)
    handlers = [logging.FileHandler(logging_config.log_file, encoding='utf-8')]
    if logging_config.console_output:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._netflix_insights = True
        root.addHandler(handler)

    return root


# ============================================================================
# LOAD CONFIGURATION
# ============================================================================
# Load settings from environment variables

def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Configured Config object

    Exits the process with status 1 if configuration is invalid.
    """

    def get_env(key: str, default: Any = None) -> Any:
        """Get environment variable with fallback."""
        return os.getenv(key, default)

    try:
        # Load each configuration section
        config_obj = Config(
            database=DatabaseConfig(
                database_url=get_env('DATABASE_URL', 'sqlite:///data/netflix.db'),
                echo=get_env('DATABASE_ECHO', 'False').lower() == 'true',
            ),
            paths=PathsConfig(
                data_dir=Path(get_env('DATA_DIR', './data')),
                raw_data_dir=Path(get_env('RAW_DATA_DIR', './data/raw')),
                processed_data_dir=Path(get_env('PROCESSED_DATA_DIR', './data/processed')),
                reports_dir=Path(get_env('REPORTS_DIR', './data/reports')),
                logs_dir=Path(get_env('LOGS_DIR', './data/logs')),
                titles_csv=Path(get_env('TITLES_CSV', './data/raw/netflix_titles.csv')),
            ),
            processing=ProcessingConfig(
                batch_size=int(get_env('BATCH_SIZE', 5000)),
                multi_value_delimiter=get_env('MULTI_VALUE_DELIMITER', ','),
                missing_country_sentinel=get_env('MISSING_COUNTRY_SENTINEL', 'Not Given'),
                export_format=get_env('EXPORT_FORMAT', 'csv'),
            ),
            report=ReportConfig(
                top_n=int(get_env('TOP_N', 10)),
                genre=get_env('REPORT_GENRE', 'Comedies'),
            ),
            logging=LoggingConfig(
                log_level=get_env('LOG_LEVEL', 'INFO'),
                log_file=Path(get_env('LOG_FILE', './data/logs/netflix_insights.log')),
                console_output=get_env('LOG_CONSOLE', 'False').lower() == 'true',
            ),
            environment=get_env('ENVIRONMENT', 'development'),
        )

        return config_obj

    except Exception as e:
        print(f"❌ Error loading configuration: {e}")
        print("Please check your .env file and ensure all values are valid.")
        sys.exit(1)


# ============================================================================
# GLOBAL CONFIG INSTANCE
# ============================================================================
# Single configuration instance used throughout the application

# Load configuration on module import
config = load_config()

# Print summary if running as main script
if __name__ == "__main__":
    config.print_summary()
