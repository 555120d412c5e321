"""HTTP surface for the settlement engine."""
