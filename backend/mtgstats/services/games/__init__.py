"""Game domain services: clock accounting, turn ledger and statistics.

``clock`` and ``stats`` are pure and import nothing from the models, so the
models can use them; ``ledger`` and ``active`` work against a session that
the caller passes in.
"""
