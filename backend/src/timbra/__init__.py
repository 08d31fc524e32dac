"""
Timbra - CFDI validation and stamping-readiness core.

Validates Mexican electronic invoices (CFDI) against SAT rules before they
are sent to a PAC for stamping.
"""

__version__ = "0.1.0"
