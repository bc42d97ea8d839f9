"""scheck - stable finding identity, baselines and waivers for CI gating."""

__version__ = "0.1.0"
