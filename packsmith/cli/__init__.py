"""Packsmith CLI — Typer application and Rich output."""
