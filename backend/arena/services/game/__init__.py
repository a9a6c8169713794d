"""Game domain services: election, phase clock, voting, scoring, replication.

This package contains pure(ish) domain logic shared by the peer orchestrator,
the relay server's inspection routes and the CLI, keeping transport concerns
separated from core game mechanics.
"""
