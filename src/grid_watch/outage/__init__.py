"""DTEK rolling-outage schedule lookup."""
