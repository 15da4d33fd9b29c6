"""
Admission outcome and the cluster secret built while admitting a pod.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"
PATCH_TYPE_JSON_PATCH = "JSONPatch"
SECRET_TYPE_OPAQUE = "Opaque"


@dataclass
class ClusterSecret:
    """Secret materialized for a single pod, named after it."""

    name: str
    namespace: str
    data: Dict[str, bytes] = field(default_factory=dict)
    type: str = SECRET_TYPE_OPAQUE


@dataclass
class AdmissionOutcome:
    """Terminal decision for one admission request."""

    allowed: bool
    patch: Optional[bytes] = None
    patch_type: Optional[str] = None
    status_code: int = 200
    message: Optional[str] = None

    @classmethod
    def allow(cls, patch: Optional[bytes] = None):
        """Create an allowed outcome, optionally carrying a JSON patch."""
        if patch is None:
            return cls(allowed=True)
        return cls(allowed=True, patch=patch, patch_type=PATCH_TYPE_JSON_PATCH)

    @classmethod
    def errored(cls, status_code: int, message: str):
        """Create a rejected outcome."""
        return cls(allowed=False, status_code=status_code, message=message)

    def to_response(self, uid: str) -> Dict[str, Any]:
        """Build the AdmissionReview ``response`` body."""
        response: Dict[str, Any] = {"uid": uid, "allowed": self.allowed}

        if self.patch is not None:
            response["patch"] = base64.b64encode(self.patch).decode("utf-8")
            response["patchType"] = self.patch_type

        if not self.allowed:
            response["status"] = {"code": self.status_code, "message": self.message}

        return response


def build_admission_review(uid: str, outcome: AdmissionOutcome) -> Dict[str, Any]:
    """Wrap an outcome into an admission.k8s.io/v1 AdmissionReview."""
    return {
        "apiVersion": ADMISSION_API_VERSION,
        "kind": ADMISSION_KIND,
        "response": outcome.to_response(uid),
    }
