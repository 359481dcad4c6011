"""
Overdue Ticket Alert System.

This package ingests ticket exports from external ticketing systems
(Clarify, Jira, ITSM), classifies overdue tickets by severity thresholds,
builds Excel reports and analytics, and emails alerts for overdue tickets.
"""

__version__ = "1.0.0"
__author__ = "Support Tooling"
