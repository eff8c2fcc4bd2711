"""Domain core: palette, models, snapshot, clock and notifications."""
