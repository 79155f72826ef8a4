"""
Weather Rollup Service

Ingests single weather readings into PostgreSQL and maintains hourly,
daily, weekly and monthly summary tables derived from them.
"""

__version__ = "1.0.0"
