"""Command-line interface for Agent Wallet AI."""
