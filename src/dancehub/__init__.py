"""DanceHub API — achievement and badge engine for the dance platform."""
