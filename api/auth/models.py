"""
Identity types shared by the verifiers, the resolver and route handlers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

IssuerKind = Literal["local", "remote"]


@dataclass
class Principal:
    """
    Verified identity extracted from a token, before it is matched to a user row.

    For local tokens `subject` is the numeric user id as a string; for remote
    tokens it is the identity provider's opaque `sub` claim.
    """

    subject: str
    issuer_kind: IssuerKind
    claims: dict[str, Any] = field(default_factory=dict)
    user_id: int | None = None


@dataclass(frozen=True)
class LocalCredentials:
    password_hash: str


@dataclass(frozen=True)
class FederatedIdentity:
    external_subject: str


Identity = Union[LocalCredentials, FederatedIdentity]


@dataclass(frozen=True)
class User:
    id: int
    username: str
    email: str | None
    is_admin: bool
    identity: Identity

    @property
    def is_federated(self) -> bool:
        return isinstance(self.identity, FederatedIdentity)

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "isAdmin": self.is_admin,
        }


def user_from_row(row: dict[str, Any], *, prefer: IssuerKind = "local") -> User:
    """
    Project a `"user"` row onto the sum type.

    A row carrying both a password hash and an external subject only exists
    while accounts are being migrated; `prefer` picks the variant that matches
    the trust model of the running deployment.
    """
    password_hash = row.get("password_hash")
    external_subject = row.get("external_subject")

    identity: Identity
    if password_hash and external_subject:
        identity = (
            FederatedIdentity(str(external_subject))
            if prefer == "remote"
            else LocalCredentials(str(password_hash))
        )
    elif external_subject:
        identity = FederatedIdentity(str(external_subject))
    elif password_hash:
        identity = LocalCredentials(str(password_hash))
    else:
        raise ValueError(f"User {row.get('id')} has neither credentials nor an external subject.")

    return User(
        id=int(row["id"]),
        username=str(row["username"]),
        email=row.get("email"),
        is_admin=bool(row.get("is_admin", False)),
        identity=identity,
    )
