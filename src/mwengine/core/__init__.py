"""Core primitives shared across mwengine: errors, logging, session state."""
