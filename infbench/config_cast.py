from __future__ import annotations

import logging
from typing import Any, Callable, Dict

import numpy as np

logger = logging.getLogger(__name__)


def coerce_scalar(value: Any) -> Any:
    if isinstance(value, (np.generic,)):
        return value.item()
    if isinstance(value, np.ndarray) and value.ndim == 0:
        return value.item()
    return value


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return True
    if isinstance(value, np.ndarray) and value.size == 0:
        return True
    return False


def _is_numeric_string(value: str) -> bool:
    try:
        float(value)
        return True
    except ValueError:
        return False


def _coerce_number(value: Any, target_type: type, key: str) -> Any:
    value = coerce_scalar(value)
    if isinstance(value, bool):
        return target_type(value)
    if isinstance(value, str):
        raw = value.strip()
        if not _is_numeric_string(raw):
            raise ValueError(
                f"Invalid option {key}='{value}' (expected {target_type.__name__})."
            )
        value = float(raw) if target_type is float else int(float(raw))
    try:
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid option {key}='{value}' (expected {target_type.__name__})."
        ) from exc


def _coerce_bool(value: Any, key: str) -> bool:
    value = coerce_scalar(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"true", "1", "yes", "on"}:
            return True
        if raw in {"false", "0", "no", "off"}:
            return False
    raise ValueError(f"Invalid option {key}='{value}' (expected bool).")


def optional(caster: Any) -> Callable[[Any, str], Any]:
    """Accept ``None``/``"none"`` besides values accepted by ``caster``."""

    def _coerce(value: Any, key: str) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and value.strip().lower() in {"none", "null"}:
            return None
        return _cast(caster, value, key)

    return _coerce


def choice(*allowed: str) -> Callable[[Any, str], str]:
    lookup = {a.lower(): a for a in allowed}

    def _coerce(value: Any, key: str) -> str:
        raw = str(coerce_scalar(value)).strip()
        if raw.lower() not in lookup:
            raise ValueError(
                f"Invalid option {key}='{value}' (expected one of {list(allowed)})."
            )
        return lookup[raw.lower()]

    return _coerce


def _cast(caster: Any, value: Any, key: str) -> Any:
    if caster is int:
        return _coerce_number(value, int, key)
    if caster is float:
        return _coerce_number(value, float, key)
    if caster is bool:
        return _coerce_bool(value, key)
    if caster is str:
        return str(coerce_scalar(value))
    if callable(caster):
        return caster(value, key)
    return coerce_scalar(value)


def coerce_options(
    values: Dict[str, Any], schema: Dict[str, Any], defaults: Dict[str, Any]
) -> Dict[str, Any]:
    """Cast ``values`` with ``schema``; bad values fall back to ``defaults``."""
    coerced = dict(values)
    for key, caster in schema.items():
        if key not in coerced:
            continue
        try:
            coerced[key] = _cast(caster, coerced[key], key)
        except ValueError as exc:
            logger.warning("%s Using default %r.", exc, defaults.get(key))
            coerced[key] = defaults.get(key)
    return coerced


def enhance_line_value(value: Any, key: str) -> Any:
    value = coerce_scalar(value)
    if isinstance(value, bool):
        raise ValueError(f"Invalid option {key}='{value}' (expected index or name).")
    if isinstance(value, (int, float)):
        return int(value)
    raw = str(value).strip().lower()
    if raw in {"first", "last", "none"}:
        return raw
    if raw.isdigit():
        return int(raw)
    raise ValueError(
        f"Invalid option {key}='{value}' (expected 'first', 'last', 'none' or index)."
    )
