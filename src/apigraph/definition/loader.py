from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from apigraph.domain.models import ApiDefinition
from apigraph.errors import DefinitionLoadError

logger = logging.getLogger(__name__)


def parse_definition(data: Any, source: str = "<memory>") -> ApiDefinition:
    """Turn decoded JSON into a snapshot. Entry-level rules are checked later, by the validator."""
    if not isinstance(data, dict):
        raise DefinitionLoadError(f"{source}: top level must be an object", details={"source": source})
    try:
        return ApiDefinition.model_validate(data)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise DefinitionLoadError(
            f"{source}: definition does not match the entry schema",
            details={"source": source, "errors": problems},
        ) from exc


def load_definition(path: Path) -> ApiDefinition:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DefinitionLoadError(f"cannot read {path}: {exc}", details={"source": str(path)}) from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DefinitionLoadError(
            f"{path}: invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}",
            details={"source": str(path)},
        ) from exc

    definition = parse_definition(data, source=str(path))
    logger.debug("loaded definition %s from %s", definition.name, path)
    return definition
