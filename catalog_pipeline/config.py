"""Application configuration using Pydantic settings."""

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Required runtime configuration is missing or invalid."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"Missing required configuration: {', '.join(missing)}"
        )


def sanitize_env_value(value: str) -> str:
    """Strip whitespace and stray quoting pasted around an env value."""
    cleaned = value.strip()
    cleaned = cleaned.lstrip("`'\"")
    return cleaned.rstrip(";`'\"")


class StockSiteConfig(BaseModel):
    """Everything the authenticated stock site session needs."""

    base_url: str
    check_stock_path: str
    username: str
    password: str
    search_selector: str
    results_row_selector: str
    landing_path: str = "calculator.php"
    login_user_selector: str = "#UserName1"
    login_password_selector: str = "#Pass1"
    login_submit_selector: str = "#Submit1"
    results_container_selector: str = "#listDiv"
    form_selector: str = "#control_panel"
    cell_selector: str = "td.database_content"
    no_record_text: str = "----- No Record -----"

    @property
    def login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/"

    @property
    def check_stock_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.check_stock_path}"


class DetailSiteConfig(BaseModel):
    """Public product detail site (behind an anti-automation interstitial)."""

    base_url: str = "https://www.mygiftuniversal.com"
    search_path: str = "/products-listing/product/listing"
    search_param: str = "filter_Search_8"


class BrowserTimings(BaseModel):
    """Timeouts (milliseconds) shared by both browser sessions."""

    page_ready_timeout_ms: int = 15000
    search_settle_timeout_ms: int = 45000
    challenge_timeout_ms: int = 20000
    navigation_race_timeout_ms: int = 10000
    action_timeout_ms: int = 30000
    navigation_timeout_ms: int = 45000


class Settings(BaseSettings):
    """Application settings."""

    # ==========================================================================
    # Stock site (authenticated)
    # ==========================================================================
    stock_base_url: str = ""
    stock_check_path: str = ""
    stock_username: str = ""
    stock_password: str = ""
    stock_search_selector: str = ""
    stock_results_row_selector: str = ""
    stock_landing_path: str = "calculator.php"
    stock_login_user_selector: str = "#UserName1"
    stock_login_password_selector: str = "#Pass1"
    stock_login_submit_selector: str = "#Submit1"
    stock_results_container_selector: str = "#listDiv"
    stock_form_selector: str = "#control_panel"
    stock_cell_selector: str = "td.database_content"
    stock_no_record_text: str = "----- No Record -----"

    # ==========================================================================
    # Detail site
    # ==========================================================================
    detail_base_url: str = "https://www.mygiftuniversal.com"
    detail_search_path: str = "/products-listing/product/listing"
    detail_search_param: str = "filter_Search_8"

    # ==========================================================================
    # Browser
    # ==========================================================================
    browser_headless: bool = True
    browser_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    browser_viewport_width: int = 1280
    browser_viewport_height: int = 720

    page_ready_timeout_ms: int = 15000  # Wait for a page's ready selector
    search_settle_timeout_ms: int = 45000  # Wait for stock search results to settle
    challenge_timeout_ms: int = 20000  # Wait for the interstitial to clear
    navigation_race_timeout_ms: int = 10000  # Full-page navigation after search submit

    # Throttling between items (seconds)
    stock_item_delay_seconds: float = 1.0
    detail_item_delay_seconds: float = 0.75
    copy_item_delay_seconds: float = 0.5
    copy_concurrency: int = 1

    # ==========================================================================
    # Marketing copy (OpenAI)
    # ==========================================================================
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("openai_api_key", "open_api_key"),
    )
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.6
    llm_max_tokens: int = 600
    llm_timeout_seconds: float = 60.0
    copy_errors_raise: bool = True  # False: treat service errors as "no copy"

    # ==========================================================================
    # Files
    # ==========================================================================
    cache_file: str = "cache.json"
    products_file: str = "files/products.csv"
    output_dir: str = "."

    # App Settings
    log_level: str = "INFO"
    log_dir: str = ""

    # ==========================================================================
    # Downstream sync and scheduling
    # ==========================================================================
    database_url: str = ""
    sync_cron: str = "0 3 * * *"
    pipeline_cron: str = ""
    scheduler_timezone: str = "Asia/Singapore"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def strip_env_quoting(cls, v):
        if isinstance(v, str):
            return sanitize_env_value(v)
        return v

    def stock_site(self) -> StockSiteConfig:
        """
        Build the stock session config, failing fast on missing keys.

        Raises:
            ConfigurationError: If any required stock site key is blank
        """
        required = {
            "stock_base_url": self.stock_base_url,
            "stock_check_path": self.stock_check_path,
            "stock_username": self.stock_username,
            "stock_password": self.stock_password,
            "stock_search_selector": self.stock_search_selector,
            "stock_results_row_selector": self.stock_results_row_selector,
        }
        missing = [key.upper() for key, value in required.items() if not value]
        if missing:
            raise ConfigurationError(missing)

        return StockSiteConfig(
            base_url=self.stock_base_url,
            check_stock_path=self.stock_check_path,
            username=self.stock_username,
            password=self.stock_password,
            search_selector=self.stock_search_selector,
            results_row_selector=self.stock_results_row_selector,
            landing_path=self.stock_landing_path,
            login_user_selector=self.stock_login_user_selector,
            login_password_selector=self.stock_login_password_selector,
            login_submit_selector=self.stock_login_submit_selector,
            results_container_selector=self.stock_results_container_selector,
            form_selector=self.stock_form_selector,
            cell_selector=self.stock_cell_selector,
            no_record_text=self.stock_no_record_text,
        )

    def detail_site(self) -> DetailSiteConfig:
        return DetailSiteConfig(
            base_url=self.detail_base_url,
            search_path=self.detail_search_path,
            search_param=self.detail_search_param,
        )

    def browser_timings(self) -> BrowserTimings:
        return BrowserTimings(
            page_ready_timeout_ms=self.page_ready_timeout_ms,
            search_settle_timeout_ms=self.search_settle_timeout_ms,
            challenge_timeout_ms=self.challenge_timeout_ms,
            navigation_race_timeout_ms=self.navigation_race_timeout_ms,
        )


settings = Settings()
