"""Template loading, caching and rendering."""

from .cache import CacheEntry, TemplateCache
from .engine import TemplateEngine, create_jinja_env
from .loader import BUILTIN_TEMPLATES_DIR, DictTemplateLoader, FileTemplateLoader, TemplateLoader

__all__ = [
    "BUILTIN_TEMPLATES_DIR",
    "CacheEntry",
    "DictTemplateLoader",
    "FileTemplateLoader",
    "TemplateCache",
    "TemplateEngine",
    "TemplateLoader",
    "create_jinja_env",
]
