"""
Verification module for blobverify.

Components:
- pipeline: producer/consumer blob verification
- reporter: progress and summary output
"""

from .pipeline import TallyResult, VerificationPipeline
from .reporter import ConsoleReporter, Reporter

__all__ = [
    "ConsoleReporter",
    "Reporter",
    "TallyResult",
    "VerificationPipeline",
]
