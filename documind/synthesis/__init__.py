"""Documentation synthesis over a language-model runner."""

from .synthesizer import ASSET_URL_PREFIX, DocumentationSynthesizer, TextRunner

__all__ = ["ASSET_URL_PREFIX", "DocumentationSynthesizer", "TextRunner"]
