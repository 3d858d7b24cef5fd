"""Command line interface for ffnet."""
