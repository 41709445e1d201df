from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'AI Brief Report Service'

    data_dir: Path = Field(default=Path('./data'))
    log_level: str = 'INFO'

    # OpenAI Responses API
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices('OPENAI_API_KEY', 'API_KEY', 'LLM_API_KEY'),
    )
    openai_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices('BASE_URL', 'OPENAI_BASE_URL', 'LLM_BASE_URL'),
    )
    report_model: str = Field(
        default='gpt-5',
        validation_alias=AliasChoices('OPENAI_MODEL_REPORT', 'REPORT_MODEL'),
    )
    report_reasoning_effort: str = 'medium'
    llm_timeout_seconds: int = 600
    llm_max_attempts: int = 3
    llm_retry_base_delay_seconds: float = 0.5

    # Banner image generation (task-based remote service)
    imagegen_base_url: str | None = None
    imagegen_api_key: str | None = None
    imagegen_create_endpoint: str = '/tasks'
    imagegen_poll_endpoint_template: str = '/tasks/{task_id}'
    imagegen_poll_interval_seconds: float = 2.0
    imagegen_max_poll_attempts: int = 30
    imagegen_timeout_seconds: int = 60
    imagegen_placeholder_urls: str = (
        'https://storage.googleapis.com/msgsndr/6LvSeUzOMEkQrC9oF5AI/media/687a3f910657f02bf1e88160.jpeg,'
        'https://storage.googleapis.com/msgsndr/6LvSeUzOMEkQrC9oF5AI/media/687915b96ccf5645dba7e085.jpeg,'
        'https://storage.googleapis.com/msgsndr/6LvSeUzOMEkQrC9oF5AI/media/68bb04c89846a6c43e4fd338.webp,'
        'https://storage.googleapis.com/msgsndr/6LvSeUzOMEkQrC9oF5AI/media/687bcc9d8f398f0686b47096.jpeg'
    )

    # PDF rendering
    pdf_backend: str = 'vector'
    # Used once when the selected backend cannot acquire its engine. Empty disables.
    pdf_fallback_backend: str = 'vector'
    pdf_font_path: Path | None = None
    pdf_bold_font_path: Path | None = None
    pdf_italic_font_path: Path | None = None
    pdf_page_margin: int = 40
    pdf_bottom_margin: int = 56
    pdf_body_font_size: float = 11.0
    pdf_banner_height: int = 200
    image_fetch_timeout_seconds: float = 10.0

    # Headless browser (raster + print backends)
    browser_launch_args: str = '--no-sandbox,--disable-setuid-sandbox,--font-render-hinting=none'
    browser_content_timeout_ms: int = 30000
    browser_image_wait_ms: int = 5000
    raster_scale: float = 2.0
    raster_viewport_width: int = 794

    # Branding
    brand_name: str = 'EZWAI Consulting'
    brand_tagline: str = 'Intelligent Automation for Growing Businesses'
    cover_title: str = 'AI Strategic Brief'
    cover_subtitle: str = 'A Growth & Innovation Roadmap for'
    cover_image_url: str | None = None
    disclaimer: str = (
        'This report was generated using proprietary AI analysis and creative direction. '
        'The information and recommendations contained herein are for strategic planning '
        'purposes and do not constitute financial or legal advice.'
    )

    # Rate limiting (per client address, best effort)
    rate_limit_requests: int = 20
    rate_limit_window_seconds: float = 60.0

    # HTTP server
    server_host: str = '0.0.0.0'
    server_port: int = 8000
    job_workers: int = 2
    submit_default_wait_seconds: int = 0
    submit_poll_interval_seconds: float = 1.0

    def placeholder_images(self) -> list[str]:
        urls: list[str] = []
        for item in self.imagegen_placeholder_urls.split(','):
            normalized = item.strip()
            if not normalized:
                continue
            urls.append(normalized)
        return urls

    def browser_args(self) -> list[str]:
        return [item.strip() for item in self.browser_launch_args.split(',') if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    (settings.data_dir / 'jobs').mkdir(parents=True, exist_ok=True)
    return settings
