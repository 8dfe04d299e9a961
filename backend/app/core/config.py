from pydantic_settings import BaseSettings
from typing import List, Optional
from decimal import Decimal


class Settings(BaseSettings):
    ENV: str = "development"
    DATABASE_URL: str = "sqlite:///./pricing.db"
    LOG_LEVEL: str = "INFO"
    
    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8080"
    
    # Tax settings seed (used when the tax_settings row does not exist yet)
    DEFAULT_GST_RATE: Decimal = Decimal("18")
    DEFAULT_STORE_STATE: str = "Tamil Nadu"
    DEFAULT_PRICE_INCLUDES_TAX: bool = True
    DEFAULT_GSTIN: Optional[str] = None
    
    CURRENCY_SYMBOL: str = "₹"
    
    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]
    
    class Config:
        env_file = ".env"


settings = Settings()
