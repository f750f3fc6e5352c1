"""Per-replicate modeling, bootstrap driver and aggregation."""
