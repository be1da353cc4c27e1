"""Stack manifest registry and template loading."""

from webspec.registry.loader import (
    RegistryError,
    TemplateLoader,
    TemplateNotFoundError,
    load_registry,
    load_template,
)

__all__ = [
    "RegistryError",
    "TemplateLoader",
    "TemplateNotFoundError",
    "load_registry",
    "load_template",
]
