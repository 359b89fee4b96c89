"""Student and administrator dashboards."""
