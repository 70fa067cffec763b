"""CSV export and import of back-office entities."""
