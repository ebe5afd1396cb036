"""
Drift - Monte Carlo portfolio simulation.

Estimates return parameters from historical prices, generates batches of
simulated portfolio-value paths in parallel (drift-diffusion or historical
resampling), and reduces them into percentile, drawdown and growth statistics.
"""

__version__ = "1.0.0"
__author__ = "Drift contributors"
