"""Key manifest scanning, reconciliation and loading."""

from sshkm.keys.loader import CredentialLoader, LoadOutcome, LoadStatus, LoadSummary
from sshkm.keys.manifest import KeyManifestScanner, ManifestResult, ManifestStatus
from sshkm.keys.reconcile import ReconcileDecision, Reconciler

__all__ = [
    "CredentialLoader",
    "KeyManifestScanner",
    "LoadOutcome",
    "LoadStatus",
    "LoadSummary",
    "ManifestResult",
    "ManifestStatus",
    "ReconcileDecision",
    "Reconciler",
]
