# tests/unit/test_responses.py
"""
Unit tests for admission outcomes
"""

import base64

from dapsw.responses import AdmissionOutcome, build_admission_review


def test_allow_without_patch():
    outcome = AdmissionOutcome.allow()

    assert outcome.allowed is True
    assert outcome.patch is None
    assert outcome.patch_type is None
    assert outcome.to_response("uid-1") == {"uid": "uid-1", "allowed": True}


def test_allow_with_patch():
    patch = b'[{"op": "add", "path": "/metadata/labels", "value": {}}]'

    response = AdmissionOutcome.allow(patch).to_response("uid-1")

    assert response["allowed"] is True
    assert response["patchType"] == "JSONPatch"
    assert base64.b64decode(response["patch"]) == patch
    assert "status" not in response


def test_errored():
    outcome = AdmissionOutcome.errored(405, "unsupported operation on pod")

    assert outcome.to_response("uid-1") == {
        "uid": "uid-1",
        "allowed": False,
        "status": {"code": 405, "message": "unsupported operation on pod"},
    }


def test_build_admission_review():
    review = build_admission_review("uid-1", AdmissionOutcome.allow())

    assert review == {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "response": {"uid": "uid-1", "allowed": True},
    }
