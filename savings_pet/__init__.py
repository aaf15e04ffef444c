"""
Savings Pet - Source Package

The pet progression engine of a personal finance app: experience points,
mood-gated level-ups and the XP economy that unlocks new pets.

DESIGN PRINCIPLES:
1. Rules are pure functions over snapshots
2. XP is never lost to a blocked level-up, only banked
3. Every write is conditional on the version it was computed from
4. Every transition is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Savings Pet Team"
