"""
ID Card Service Configuration
Compatible with Pydantic v2 and pydantic-settings
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from pathlib import Path
import json


class Settings(BaseSettings):
    """Application settings for the employee ID card service"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore"
    )

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Employee ID Card Service"
    VERSION: str = "1.0.0"

    # Development/Debug Configuration
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    ALLOWED_ORIGINS: str = "http://localhost:4200,http://localhost:3000"

    @property
    def allowed_origins_list(self) -> List[str]:
        """Convert ALLOWED_ORIGINS to a list, accepting JSON or comma-separated values"""
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, str):
                origins = [origins]
        except ValueError:
            origins = self.ALLOWED_ORIGINS.split(",")
        return [o.strip() for o in origins if o and o.strip()]

    # Static assets
    STATIC_ASSET_ROOT: str = str(Path(__file__).resolve().parent.parent.parent / "assets")
    HEADER_ASSET: str = "id-header.svg"
    DEFAULT_LOGO: str = "Sfw-Logo.svg"
    FONT_DIRS: List[str] = [
        "fonts",
        "/usr/share/fonts/truetype/inter",
        "/usr/share/fonts/truetype/dejavu",
        "/System/Library/Fonts",
        "C:/Windows/Fonts",
    ]
    ASSET_FETCH_TIMEOUT_SECONDS: float = 30.0
    # Hosts that photo and logo URLs may be fetched from; empty disables remote fetches
    ALLOWED_ASSET_HOSTS: List[str] = []

    # Office contact block printed on the back of every card
    OFFICE_PHONE: str = "+91 7397720330"
    OFFICE_ADDRESS_LINES: List[str] = [
        "7/2A, Shreesha Building,",
        "First Floor, Central Studio Road,",
        "Dhanalakshmi Puram South,",
        "Singanallur, Coimbatore,",
        "Tamil Nadu - 641005",
    ]

    # Card production
    CARD_VALIDITY_MONTHS: int = 3
    RENDER_FACES_CONCURRENTLY: bool = True

    def get_static_asset_root(self) -> Path:
        """Get the static asset root as a Path"""
        return Path(self.STATIC_ASSET_ROOT)

    def get_font_dirs(self) -> List[Path]:
        """Font directories, relative entries resolved against the asset root"""
        root = self.get_static_asset_root()
        dirs = []
        for entry in self.FONT_DIRS:
            path = Path(entry)
            dirs.append(path if path.is_absolute() else root / path)
        return dirs


def get_settings() -> Settings:
    """Get application settings instance"""
    return Settings()
