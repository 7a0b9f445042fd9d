"""Core services: streaks, chilla windows, certificates, ingestion and exports."""
