"""DeckSlayer: multi-agent Investment Committee review of startup pitch decks."""

__version__ = "0.4.0"
