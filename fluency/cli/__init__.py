"""CLI Module - typer commands for the fluency engine."""
