"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

RenderingStrategy = Literal["rest", "liveAutomation"]

_STRATEGY_ALIASES = {
    "rest": "rest",
    "live": "liveAutomation",
    "liveautomation": "liveAutomation",
    "live_automation": "liveAutomation",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Pipeline
    rendering_strategy: RenderingStrategy = Field(default="rest", alias="RENDERING_STRATEGY")
    template_table: dict[str, str] = Field(
        default_factory=lambda: {"default": "1:14", "sale": "1:14"},
        alias="TEMPLATE_TABLE",
    )
    inter_record_delay_ms: int = Field(default=1000, ge=0, alias="INTER_RECORD_DELAY_MS")
    export_scale: float = Field(default=2, gt=0, alias="EXPORT_SCALE")
    retry_attempts: int = Field(default=3, ge=1, alias="RETRY_ATTEMPTS")
    debug_artifacts: bool = Field(default=False, alias="DEBUG_ARTIFACTS")

    # Design tool
    figma_token: Optional[str] = Field(default=None, alias="FIGMA_TOKEN")
    figma_file_key: str = Field(default="RxhmuaosdbiwMrC4Skf2Hr", alias="FIGMA_FILE_KEY")
    figma_api_base: str = Field(default="https://api.figma.com/v1", alias="FIGMA_API_BASE")
    figma_app_url: str = Field(default="https://www.figma.com", alias="FIGMA_APP_URL")

    # Image hosting
    upload_service: Literal["cloudinary", "local"] = Field(default="cloudinary", alias="UPLOAD_SERVICE")
    cloudinary_url: Optional[str] = Field(default=None, alias="CLOUDINARY_URL")
    cloudinary_upload_preset: Optional[str] = Field(default=None, alias="CLOUDINARY_UPLOAD_PRESET")
    cloudinary_folder: str = Field(default="promo-cards", alias="CLOUDINARY_FOLDER")

    # Timeouts
    remote_timeout_seconds: float = Field(default=30.0, gt=0, alias="REMOTE_TIMEOUT_SECONDS")
    ready_timeout_seconds: float = Field(default=30.0, gt=0, alias="READY_TIMEOUT_SECONDS")
    navigation_timeout_seconds: float = Field(default=60.0, gt=0, alias="NAVIGATION_TIMEOUT_SECONDS")

    # Live editor automation
    cookies_path: Path = Field(default=Path("cookies.json"), alias="COOKIES_PATH")
    browser_headless: bool = Field(default=True, alias="BROWSER_HEADLESS")
    viewport_width: int = Field(default=1920, alias="VIEWPORT_WIDTH")
    viewport_height: int = Field(default=1080, alias="VIEWPORT_HEIGHT")
    duplicate_offset_x: int = Field(default=400, alias="DUPLICATE_OFFSET_X")
    header_layer_name: str = Field(default="Header", alias="HEADER_LAYER_NAME")
    promo_layer_name: str = Field(default="PromoText", alias="PROMO_LAYER_NAME")
    settle_delay_ms: int = Field(default=1000, ge=0, alias="SETTLE_DELAY_MS")

    # Overlay fonts
    font_path: Optional[Path] = Field(default=None, alias="FONT_PATH")
    font_bold_path: Optional[Path] = Field(default=None, alias="FONT_BOLD_PATH")

    # Paths
    output_dir: Path = Field(default=Path("output"), alias="OUTPUT_DIR")
    temp_dir: Path = Field(default=Path("temp"), alias="TEMP_DIR")
    results_filename: str = Field(default="image_results.json", alias="RESULTS_FILENAME")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    gcp_project_id: Optional[str] = Field(default=None, alias="GCP_PROJECT_ID")

    @field_validator("rendering_strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value):
        if isinstance(value, str):
            return _STRATEGY_ALIASES.get(value.strip().lower(), value)
        return value

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    @property
    def results_path(self) -> Path:
        """Path of the latest batch result document."""
        return self.output_dir / self.results_filename

    @property
    def local_upload_dir(self) -> Path:
        """Where the local upload sink writes cards."""
        return self.output_dir / "cards"

    @property
    def figma_file_url(self) -> str:
        """Editor URL of the design file."""
        return f"{self.figma_app_url.rstrip('/')}/file/{self.figma_file_key}"


# Global settings instance
settings = Settings()
