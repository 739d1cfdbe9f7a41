"""
Vendor Analytics Core

Multi-tenant analytics guard, scope resolver and KPI aggregator for vendor
and administrator revenue, ticket and reservation reporting.
"""

__version__ = "1.0.0"
