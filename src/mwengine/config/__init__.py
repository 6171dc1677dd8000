"""Configuration package for mwengine."""
