"""
Exam question selection engine.

Picks, for one exam attempt, an ordered list of distinct questions from a
category catalog, balancing novelty against a bounded share of questions
the requester has already seen.
"""

__version__ = "0.1.0"
