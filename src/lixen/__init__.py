"""lixen - tag-driven codebase context curation."""

__version__ = "0.1.0"
