"""CLI subcommands for relpack."""
