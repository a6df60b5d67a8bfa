"""Source connectors: one package per external source type."""
