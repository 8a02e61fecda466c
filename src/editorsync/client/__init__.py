"""Client module - Gist and marketplace clients, sync engine and CLI."""
