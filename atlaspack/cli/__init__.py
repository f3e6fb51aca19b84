"""Command-line interface for atlaspack."""
