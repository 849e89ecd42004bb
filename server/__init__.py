"""HTTP surface for the devjournal engine."""
