"""
Services package - Orchestration on top of the domain rules.

Includes the stamping and cancellation pipelines and the PAC adapter interface.
"""

from .stamping import (
    CancellationOutcome,
    CancellationReceipt,
    PACClient,
    StampingOutcome,
    StampingService,
    StampReceipt,
)

__all__ = [
    "CancellationOutcome",
    "CancellationReceipt",
    "PACClient",
    "StampReceipt",
    "StampingOutcome",
    "StampingService",
]
