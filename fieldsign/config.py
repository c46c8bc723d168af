"""Application configuration using Pydantic settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Document Field Compositor")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Viewport
    sidebar_offset: float = Field(
        default=320.0,
        description="Horizontal correction subtracted from field x at export while the sidebar is open",
    )

    # Field placement
    duplicate_tolerance: float = Field(default=10.0)

    # Export
    placeholder_label: str = Field(default="SIGNATURE")
    export_font: str = Field(default="helv", description="PyMuPDF base-14 font name")
    max_typed_font_size: float = Field(default=14.0)
    max_placeholder_font_size: float = Field(default=12.0)

    # Text-to-PDF synthesis (A4 in points)
    text_page_width: float = Field(default=595.0)
    text_page_height: float = Field(default=842.0)
    text_margin: float = Field(default=50.0)
    title_font_size: float = Field(default=18.0)
    body_font_size: float = Field(default=12.0)
    body_line_height: float = Field(default=21.0)

    # Document source
    document_fetch_timeout: float = Field(default=30.0)

    @field_validator(
        "text_page_width",
        "text_page_height",
        "title_font_size",
        "body_font_size",
        "body_line_height",
        "max_typed_font_size",
        "max_placeholder_font_size",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate sizes are strictly positive."""
        if v <= 0:
            raise ValueError("Size settings must be positive")
        return v

    @field_validator("duplicate_tolerance", "sidebar_offset", "text_margin")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Validate offsets and tolerances are not negative."""
        if v < 0:
            raise ValueError("Offsets and tolerances must not be negative")
        return v


# Global settings instance
settings = Settings()
