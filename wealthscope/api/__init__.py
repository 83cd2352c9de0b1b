"""HTTP surface and persistence for the WealthScope portfolio service."""
