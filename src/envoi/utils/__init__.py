"""Hashing and chain transport helpers.

Depends on [envoi.models][envoi.models] and the exception types in
[envoi.core.exceptions][envoi.core.exceptions]; never on services.

Attributes:
    namehash: Name digests and reverse storage keys.
    algod: aiohttp client for box reads and ARC-72 ownership lookups.
    http: Bounded JSON body reading.
"""
