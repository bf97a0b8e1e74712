"""Client core for project chat with @-mention autocomplete."""

__version__ = "0.1.0"
