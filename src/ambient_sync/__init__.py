"""
Ambient Weather station to Elasticsearch synchronization.

Polls the Ambient Weather API, converts readings to metric and indexes
both representations into the production and staging clusters.
"""

__version__ = "0.4.0"
