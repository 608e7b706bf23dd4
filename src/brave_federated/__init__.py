"""Brave federated learning: operational profiling client.

Sends one anonymous ``collection_slot`` ping per slot of local time,
tagged with a rotating collection id.  No browsing data is ever included.
"""

__version__ = "0.1.0"
