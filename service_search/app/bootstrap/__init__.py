"""Startup helpers: sample data for local development and demos."""
