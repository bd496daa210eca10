"""
Stakeholder Interview Coach.

Practice stakeholder interviews with simulated personas and get coaching
on every question.
"""

__version__ = "0.1.0"
