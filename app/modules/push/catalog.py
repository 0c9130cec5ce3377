"""Notification catalog.

Loaded once from YAML into an immutable NotificationCatalog and injected
into the dispatcher. Formatting helpers fail closed with ConfigError: a
malformed event id would silently defeat deduplication.
"""

import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from infrastructure.logging import get_module_logger
from modules.push.errors import ConfigError
from modules.push.models import CatalogEntry, UserPreferences

logger = get_module_logger()

DEFAULT_CATALOG_PATH = Path(__file__).parent / "catalog.yaml"

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def template_params(template: str) -> List[str]:
    """List the placeholder names a template requires, in order."""
    return list(dict.fromkeys(_PLACEHOLDER.findall(template)))


def validate_template(template: str) -> None:
    """Raise ConfigError if a template has braces outside placeholders."""
    leftover = _PLACEHOLDER.sub("", template)
    if "{" in leftover or "}" in leftover:
        raise ConfigError(f"Malformed template '{template}'")


def render_template(template: str, params: Mapping[str, Any]) -> str:
    """Substitute named params into a template.

    Raises:
        ConfigError: If a placeholder has no value (missing, None or empty)
    """
    missing = [
        name
        for name in template_params(template)
        if params.get(name) is None or str(params.get(name)) == ""
    ]
    if missing:
        raise ConfigError(
            f"Missing template parameter(s) {', '.join(missing)} for '{template}'"
        )
    return _PLACEHOLDER.sub(lambda m: str(params[m.group(1)]), template)


def _template_pattern(template: str) -> "re.Pattern[str]":
    parts = []
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        parts.append(re.escape(template[position : match.start()]))
        parts.append(".+?")
        position = match.end()
    parts.append(re.escape(template[position:]))
    return re.compile("".join(parts))


class NotificationCatalog:
    """Immutable registry of notification types.

    Args:
        entries: Catalog entries; keys must be unique

    Raises:
        ConfigError: On duplicate keys or malformed templates
    """

    def __init__(self, entries: Iterable[CatalogEntry]):
        by_key: Dict[str, CatalogEntry] = {}
        for entry in entries:
            if entry.key in by_key:
                raise ConfigError(f"Duplicate catalog key '{entry.key}'")
            for template in (
                entry.event_id_format,
                entry.collapse_id_format,
                entry.thread_id_format,
            ):
                if template is not None:
                    validate_template(template)
            by_key[entry.key] = entry
        self._entries: Mapping[str, CatalogEntry] = MappingProxyType(by_key)
        self._event_patterns = {
            key: _template_pattern(entry.event_id_format)
            for key, entry in by_key.items()
        }

    @classmethod
    def from_mapping(cls, document: Mapping[str, Any]) -> "NotificationCatalog":
        """Build a catalog from a parsed ``{"notifications": [...]}`` document."""
        raw_entries = document.get("notifications") if document else None
        if not isinstance(raw_entries, list):
            raise ConfigError("Catalog document must contain a 'notifications' list")
        entries = []
        for raw in raw_entries:
            try:
                entries.append(CatalogEntry.model_validate(raw))
            except ValidationError as e:
                key = raw.get("key") if isinstance(raw, dict) else None
                raise ConfigError(f"Invalid catalog entry '{key}': {e}") from e
        return cls(entries)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "NotificationCatalog":
        """Load the catalog from a YAML file (the bundled catalog by default)."""
        catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
        try:
            with open(catalog_path, "r", encoding="utf-8") as f:
                document = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load catalog from {catalog_path}: {e}") from e

        catalog = cls.from_mapping(document or {})
        logger.info(
            "notification_catalog_loaded",
            path=str(catalog_path),
            entries=len(catalog),
        )
        return catalog

    def get(self, key: str) -> Optional[CatalogEntry]:
        return self._entries.get(key)

    def require(self, key: str) -> CatalogEntry:
        """Return an enabled entry or raise ConfigError."""
        entry = self._entries.get(key)
        if entry is None:
            raise ConfigError(f"Unknown notification key '{key}'")
        if not entry.enabled:
            raise ConfigError(f"Notification key '{key}' is disabled")
        return entry

    def all(self) -> List[CatalogEntry]:
        return list(self._entries.values())

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    @staticmethod
    def is_enabled(
        entry: CatalogEntry,
        prefs: Optional[Union[UserPreferences, Mapping[str, bool]]] = None,
    ) -> bool:
        """True if the entry is enabled and the recipient has not opted out.

        A recipient with no stored value for the preference key gets the
        entry's ``preference_default`` (allowed unless the catalog says
        otherwise); only an explicit False switches the type off.
        """
        if not entry.enabled:
            return False
        if not entry.preference_key:
            return True
        value = prefs.get(entry.preference_key) if prefs is not None else None
        if value is None:
            return entry.preference_default
        return value is not False

    def format_event_id(self, key: str, params: Mapping[str, Any]) -> str:
        return render_template(self._require_entry(key).event_id_format, params)

    def format_collapse_id(
        self, key: str, params: Mapping[str, Any]
    ) -> Optional[str]:
        """Format the collapse id; None when the entry defines no template."""
        template = self._require_entry(key).collapse_id_format
        return render_template(template, params) if template else None

    def format_thread_id(self, key: str, params: Mapping[str, Any]) -> Optional[str]:
        """Format the thread id; None when the entry defines no template."""
        template = self._require_entry(key).thread_id_format
        return render_template(template, params) if template else None

    def matches_event_id(self, key: str, event_id: str) -> bool:
        """True if event_id has the shape of the entry's event id template."""
        self._require_entry(key)
        return bool(event_id) and (
            self._event_patterns[key].fullmatch(event_id) is not None
        )

    def _require_entry(self, key: str) -> CatalogEntry:
        entry = self._entries.get(key)
        if entry is None:
            raise ConfigError(f"Unknown notification key '{key}'")
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries.values())
