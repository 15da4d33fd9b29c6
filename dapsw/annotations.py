"""
Secret declarations carried in pod annotations.

Each declared secret is stored under ``flyte.secrets/s<index>`` as the protobuf
text form of ``flyteidl.core.Secret``, base32 encoded with a lowercase,
padding-free alphabet that keeps the value a valid annotation.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Dict, List, Sequence

from flyteidl.core import security_pb2
from google.protobuf import text_format

from dapsw.exceptions import SecretDecodeError, ValidationError

ANNOTATION_PREFIX = "flyte.secrets/s"
POD_LABEL = "inject-flyte-secrets"
POD_LABEL_VALUE = "true"

_ANNOTATION_ALPHABET = "abcdefghijklmnopqrstuvwxyz123456"
_BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_TO_BASE32 = str.maketrans(_ANNOTATION_ALPHABET, _BASE32_ALPHABET)
_FROM_BASE32 = str.maketrans(_BASE32_ALPHABET, _ANNOTATION_ALPHABET)

MOUNT_ANY = security_pb2.Secret.MountType.Value("ANY")
MOUNT_ENV_VAR = security_pb2.Secret.MountType.Value("ENV_VAR")
MOUNT_FILE = security_pb2.Secret.MountType.Value("FILE")


@dataclass(frozen=True)
class SecretRequest:
    """One secret declared by a pod."""

    group: str
    key: str
    mount_requirement: int = MOUNT_ANY

    @classmethod
    def from_proto(cls, secret: security_pb2.Secret) -> "SecretRequest":
        return cls(group=secret.group, key=secret.key, mount_requirement=secret.mount_requirement)

    def to_proto(self) -> security_pb2.Secret:
        return security_pb2.Secret(
            group=self.group, key=self.key, mount_requirement=self.mount_requirement
        )

    @property
    def mount_requirement_name(self) -> str:
        try:
            return security_pb2.Secret.MountType.Name(self.mount_requirement)
        except ValueError:
            return str(self.mount_requirement)

    def describe(self) -> str:
        """Single-line text form, used in error messages."""
        return text_format.MessageToString(self.to_proto(), as_one_line=True)


def encode_secret(request: SecretRequest) -> str:
    text = text_format.MessageToString(request.to_proto())
    encoded = base64.b32encode(text.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=").translate(_FROM_BASE32)


def decode_secret(encoded: str) -> SecretRequest:
    raw = encoded.lower().translate(_TO_BASE32)
    raw += "=" * (-len(raw) % 8)
    try:
        text = base64.b32decode(raw).decode("utf-8")
        secret = text_format.Parse(text, security_pb2.Secret())
    except (binascii.Error, UnicodeDecodeError, text_format.ParseError) as e:
        raise SecretDecodeError(f"failed to decode secret annotation: {e}") from e
    return SecretRequest.from_proto(secret)


def _annotation_index(name: str):
    suffix = name[len(ANNOTATION_PREFIX):]
    return (0, int(suffix), "") if suffix.isdigit() else (1, 0, suffix)


def unmarshal_secrets(annotations: Dict[str, str]) -> List[SecretRequest]:
    """Decode the secrets declared in a pod's annotations, in declaration order."""
    names = sorted(
        (name for name in annotations if name.startswith(ANNOTATION_PREFIX)),
        key=_annotation_index,
    )

    requests = []
    for name in names:
        try:
            requests.append(decode_secret(annotations[name]))
        except SecretDecodeError as e:
            raise SecretDecodeError(f"annotation '{name}': {e}") from e
    return requests


def marshal_secrets(requests: Sequence[SecretRequest]) -> Dict[str, str]:
    """Encode secrets into the annotations a pod declares them with."""
    annotations = {}
    for index, request in enumerate(requests):
        if request.mount_requirement not in security_pb2.Secret.MountType.values():
            raise ValidationError(
                f"secret [{request.describe()}] has invalid mount requirement "
                f"[{request.mount_requirement}]"
            )
        annotations[f"{ANNOTATION_PREFIX}{index}"] = encode_secret(request)
    return annotations
