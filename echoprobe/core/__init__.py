"""Configuration, wire protocol and skew correction."""
