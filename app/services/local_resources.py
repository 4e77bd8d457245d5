from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from app.models.geo import FeatureCollection, RegionFeature
from app.services.errors import LocalResourceError

logger = logging.getLogger(__name__)


def _read_json(path: str | Path) -> Any:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise LocalResourceError(f"local resource unreadable: {path}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise LocalResourceError(f"local resource is not valid JSON: {path}") from exc


def load_population(path: str | Path) -> Any:
    payload = _read_json(path)
    logger.info("local_resource_loaded kind=population path=%s", path)
    return payload


def load_supplementary_features(path: str | Path) -> list[RegionFeature]:
    payload = _read_json(path)
    try:
        collection = FeatureCollection.model_validate(payload)
    except ValidationError as exc:
        raise LocalResourceError(f"local resource is not a FeatureCollection: {path}") from exc
    logger.info("local_resource_loaded kind=supplementary_features path=%s count=%s", path, len(collection))
    return collection.features
