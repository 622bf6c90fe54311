from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # database_url: str = "postgresql+psycopg://jewelquote@/jewelquote?host=/var/run/postgresql"
    database_url: str = "postgresql+psycopg://localhost:5432/jewelquote"
    database_echo: bool = False

    default_currency: str = "INR"
    default_customer_type: str = "retailer"
    customer_types: list[str] = ["retailer", "wholesaler"]

    # 신규 주문의 초기 상태 (order_statuses 테이블의 기본값이 없을 때 사용)
    default_order_status: str = "pending_payment"
    order_reference_length: int = 10

    money_decimal_places: int = 2
    notifications_enabled: bool = True

    @field_validator("database_url")
    @classmethod
    def validate_db_url(cls, v: str) -> str:
        if v and not v.startswith(("postgresql", "sqlite")):
            raise ValueError("DB URL must start with 'postgresql' or 'sqlite'")
        return v

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        code = (v or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError("default_currency must be a 3-letter ISO code")
        return code

    @field_validator("default_customer_type")
    @classmethod
    def validate_customer_type(cls, v: str) -> str:
        return (v or "").strip().lower()

    @field_validator("order_reference_length")
    @classmethod
    def validate_reference_length(cls, v: int) -> int:
        if not 6 <= v <= 32:
            raise ValueError("order_reference_length must be between 6 and 32")
        return v

    @field_validator("money_decimal_places")
    @classmethod
    def validate_decimal_places(cls, v: int) -> int:
        if not 0 <= v <= 4:
            raise ValueError("money_decimal_places must be between 0 and 4")
        return v

    model_config = SettingsConfigDict(env_file=".env", env_prefix="JEWELQUOTE_", extra="ignore", case_sensitive=False)


settings = Settings()
