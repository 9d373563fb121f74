"""
config.py
---------
Typed settings loaded from the environment (and a .env file if present).
Call get_settings() once at startup and pass the result down.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    flow_path: str = Field(default_factory=lambda: os.getenv("WINEFLOW_FLOW_PATH", "flows/wine_flow.json"))
    strict_references: bool = Field(default_factory=lambda: _env_flag("WINEFLOW_STRICT_REFERENCES"))
    log_level: str = Field(default_factory=lambda: os.getenv("WINEFLOW_LOG_LEVEL", "WARNING"))

    supabase_url: str = Field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = Field(
        default_factory=lambda: os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY", "")
    )

    # Prices in GBP
    price_never_show: float = 50.0
    price_show_with_message: float = 20.0
    budget_max_price: float = 20.0

    query_limit_with_filter: int = 50
    query_limit_no_filter: int = 1

    sim_model: str = Field(default_factory=lambda: os.getenv("WINEFLOW_SIM_MODEL", "gpt-4o-mini"))

    @property
    def has_supabase_config(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def get_settings() -> Settings:
    load_dotenv()
    return Settings()
