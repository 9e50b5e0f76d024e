"""Command-line interface for fargate-ops."""
