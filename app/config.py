from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"


class Settings(BaseSettings):
    app_env: str = "dev"
    log_level: str = "INFO"
    cors_allow_origins: str = "http://127.0.0.1:3000,http://localhost:3000"

    us_counties_csv_url: str = "https://raw.githubusercontent.com/nytimes/covid-19-data/master/us-counties.csv"
    us_totals_csv_url: str = "https://raw.githubusercontent.com/nytimes/covid-19-data/master/us.csv"
    us_counties_geojson_url_template: str = (
        "https://eric.clst.org/assets/wiki/uploads/Stuff/gz_2010_us_050_00_{resolution}.json"
    )
    country_codes_url: str = (
        "https://raw.githubusercontent.com/lukes/ISO-3166-Countries-with-Regional-Codes/master/all/all.json"
    )
    upstream_timeout_sec: float = 30.0
    upstream_chunk_size: int = 64 * 1024

    case_cache_ttl_sec: int = 43200
    cache_empty_results: bool = False

    population_path: Path = RESOURCES_DIR / "us-estimated-population-2019.json"
    supplementary_features_path: Path = RESOURCES_DIR / "tl_2019_29_place_subset.geojson"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
