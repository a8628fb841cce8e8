"""day2ops command-line interface (Typer + Rich)."""
