"""Account Batch Sync Service.

Keeps sets of external accounts in sync with a downstream system using
configurable sequential, parallel and adaptive execution strategies with
retry, pacing and live progress tracking.
"""

__version__ = "0.1.0"
__author__ = "Sync Platform Team"
