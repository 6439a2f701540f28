"""Command line interface for AgbCloud."""
