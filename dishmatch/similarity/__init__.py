"""
Similarity layer for taste-based ranking.

Responsibilities:
- Build a TF-IDF model over dish descriptions.
- Answer "which dishes read like this one" lookups with scored neighbours.
- Keep two index slots and retrain the standby one on a timer, flipping
  the active slot only after a successful build.
"""
