from functools import lru_cache

from app.config import get_settings
from app.services.case_data_service import CaseDataService


@lru_cache(maxsize=1)
def get_case_data_service() -> CaseDataService:
    return CaseDataService(get_settings())


def close_case_data_service() -> None:
    if get_case_data_service.cache_info().currsize:
        get_case_data_service().close()
    get_case_data_service.cache_clear()
