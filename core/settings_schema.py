from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping


_ALLOWED_STRUCTURE: Dict[str, Any] = {
    "backup": {
        "target_dir",
        "prefix",
        "compression_level",
        "rollover_weekday",
        "keep_export",
        "chunk_size",
        "verify_deltas",
    },
    "runtime": {
        "binary",
        "timeout_s",
        "export_compression",
    },
    "filters": {
        "include_containers",
        "exclude_containers",
        "include_hosts",
        "exclude_hosts",
    },
    "logging": {
        "verbose",
    },
    "working_dir": None,
    "version": None,
}


@dataclass(slots=True)
class SettingsValidator:
    schema: Mapping[str, Any]

    def unknown_keys(self, payload: Mapping[str, Any]) -> Iterable[str]:
        return sorted(self._iter_unknown(payload, self.schema, path=""))

    def _iter_unknown(self, payload: Mapping[str, Any], schema: Mapping[str, Any], *, path: str) -> Iterable[str]:
        for key, value in payload.items():
            if key not in schema:
                yield f"{path}{key}"
                continue
            rule = schema[key]
            if isinstance(rule, set) and isinstance(value, Mapping):
                yield from (f"{path}{key}.{sub}" for sub in value if sub not in rule)
            elif isinstance(rule, Mapping) and isinstance(value, Mapping):
                yield from self._iter_unknown(value, rule, path=f"{path}{key}.")


SETTINGS_VALIDATOR = SettingsValidator(_ALLOWED_STRUCTURE)

__all__ = ["SETTINGS_VALIDATOR", "SettingsValidator"]
