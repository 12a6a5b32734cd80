"""Application services built on top of core and platform."""
