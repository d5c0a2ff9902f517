"""Template name -> remote reference resolution."""

from types import MappingProxyType
from typing import Mapping, Optional

from .errors import ConfigurationError
from .models import DEFAULT_TEMPLATE, TemplateConfig
from .utils import get_logger

logger = get_logger(__name__)


class TemplateResolver:
    """Immutable template table with a mandatory ``default`` entry."""

    def __init__(self, table: Mapping[str, str]):
        if not table or not str(table.get(DEFAULT_TEMPLATE) or "").strip():
            raise ConfigurationError(
                f"Template table must define a non-empty '{DEFAULT_TEMPLATE}' entry"
            )
        self._templates = MappingProxyType(
            {name: TemplateConfig(name=name, remote_ref=str(ref)) for name, ref in table.items()}
        )

    @classmethod
    def from_settings(cls, settings) -> "TemplateResolver":
        return cls(settings.template_table)

    @property
    def names(self) -> list[str]:
        return sorted(self._templates)

    def resolve(self, name: Optional[str] = None) -> TemplateConfig:
        """Look up a template, falling back to ``default`` for unknown names."""
        if name and name in self._templates:
            return self._templates[name]
        if name:
            logger.warning(f"Unknown template '{name}', using '{DEFAULT_TEMPLATE}'")
        return self._templates[DEFAULT_TEMPLATE]
