from decimal import Decimal

from pydantic_settings import BaseSettings

from firm_analytics.analytics.schemas import EngineConfig, VisibilityRule


class Settings(BaseSettings):
    # Application
    app_name: str = "Firm Analytics"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    # Reporting
    reference_timezone: str = "America/Los_Angeles"
    default_billable_target: Decimal = Decimal(100)
    default_ops_target: Decimal = Decimal(50)
    default_total_target: Decimal = Decimal(150)
    sample_limit: int = 50
    top_category_limit: int = 5

    # People hidden from person-facing lists after a cutoff, as a JSON list:
    # VISIBILITY_RULES='[{"person_name": "Jane Doe", "hide_after": "2025-12-31"}]'
    visibility_rules: list[VisibilityRule] = []

    # CORS
    backend_cors_origins: list[str] = ["http://localhost", "http://localhost:5173"]

    model_config = {"env_file": ".env", "case_sensitive": False}

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            reference_timezone=self.reference_timezone,
            default_billable_target=self.default_billable_target,
            default_ops_target=self.default_ops_target,
            default_total_target=self.default_total_target,
            sample_limit=self.sample_limit,
            top_category_limit=self.top_category_limit,
            visibility_rules=tuple(self.visibility_rules),
        )


settings = Settings()
