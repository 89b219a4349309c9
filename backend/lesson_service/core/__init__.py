"""Core policies, enums, errors and configuration."""
