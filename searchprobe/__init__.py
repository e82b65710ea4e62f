"""
SearchProbe Backend
===================

Adversarial probing of e-commerce site search to qualify sales prospects.

Probe Loop: Homepage → Brand → Escalating Queries → Judgment → Verdict
"""

__version__ = "0.1.0"
