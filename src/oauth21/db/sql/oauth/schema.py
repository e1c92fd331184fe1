from __future__ import annotations

from sqlalchemy import JSON, Index, Integer, String, Uuid
from sqlalchemy.orm import declarative_base

from oauth21.core.models import DeviceCodeState
from oauth21.db.sql.utils import (
    Column,
    DateNowColumn,
    EnumBackedBool,
    EnumColumn,
    NullColumn,
    SmarterDateTime,
)

# Normalized user codes, i.e. without the hyphens
USER_CODE_MAX_LENGTH = 32
# sha256 hexdigest
HASH_LENGTH = 64

Base = declarative_base()


class Clients(Base):
    """Registered clients. Owned by the registration subsystem."""

    __tablename__ = "Clients"
    client_id = Column("ClientID", String(255), primary_key=True)
    secret_hash = NullColumn("SecretHash", String(HASH_LENGTH))
    is_confidential = Column("IsConfidential", EnumBackedBool(), default=False)
    redirect_uris = Column("RedirectURIs", JSON(), default=list)
    grant_types = Column("GrantTypes", JSON(), default=list)
    enhanced_pkce_disabled = Column(
        "EnhancedPkceDisabled", EnumBackedBool(), default=False
    )
    creation_time = DateNowColumn("CreationTime")


class DeviceCodes(Base):
    """The normal flow is
    PENDING -> APPROVED -> (row deleted upon token exchange)
    PENDING -> DENIED -> (row deleted upon the next poll)
    Expiry is not a stored status but ExpiresAt being in the past.
    """

    __tablename__ = "DeviceCodes"
    device_code = Column("DeviceCode", String(HASH_LENGTH), primary_key=True)
    user_code = Column("UserCode", String(USER_CODE_MAX_LENGTH), unique=True)
    client_id = Column("ClientID", String(255))
    scope = Column("Scope", String(1024))
    status = EnumColumn(
        "Status", DeviceCodeState, server_default=DeviceCodeState.PENDING.name
    )
    creation_time = Column("CreationTime", SmarterDateTime())
    expires_at = Column("ExpiresAt", SmarterDateTime())
    interval = Column("PollingInterval", Integer)
    last_polled_at = NullColumn("LastPolledAt", SmarterDateTime())
    user_identifier = NullColumn("UserIdentifier", String(255))
    resolution_time = NullColumn("ResolutionTime", SmarterDateTime())
    __table_args__ = (Index("index_device_codes_expires_at", expires_at),)


class AuthorizationCodes(Base):
    __tablename__ = "AuthorizationCodes"
    code = Column("Code", String(HASH_LENGTH), primary_key=True)
    client_id = Column("ClientID", String(255))
    user_id = Column("UserID", String(255))
    redirect_uri = Column("RedirectURI", String(2048))
    scope = Column("Scope", String(1024))
    code_challenge = NullColumn("CodeChallenge", String(128))
    code_challenge_method = NullColumn("CodeChallengeMethod", String(8))
    creation_time = Column("CreationTime", SmarterDateTime())
    expires_at = Column("ExpiresAt", SmarterDateTime())


class AccessTokens(Base):
    __tablename__ = "AccessTokens"
    jti = Column("JTI", Uuid(as_uuid=False), primary_key=True)
    token_hash = Column("TokenHash", String(HASH_LENGTH), unique=True)
    client_id = Column("ClientID", String(255))
    user_id = NullColumn("UserID", String(255))
    scope = Column("Scope", String(1024))
    creation_time = Column("CreationTime", SmarterDateTime())
    expires_at = Column("ExpiresAt", SmarterDateTime())
    revoked = Column("Revoked", EnumBackedBool(), default=False)
    __table_args__ = (Index("index_access_tokens_user_id", user_id),)


class RefreshTokens(Base):
    __tablename__ = "RefreshTokens"
    jti = Column("JTI", Uuid(as_uuid=False), primary_key=True)
    token_hash = Column("TokenHash", String(HASH_LENGTH), unique=True)
    access_token_jti = NullColumn("AccessTokenJTI", Uuid(as_uuid=False))
    client_id = Column("ClientID", String(255))
    user_id = NullColumn("UserID", String(255))
    scope = Column("Scope", String(1024))
    creation_time = Column("CreationTime", SmarterDateTime())
    expires_at = Column("ExpiresAt", SmarterDateTime())
    revoked = Column("Revoked", EnumBackedBool(), default=False)
    __table_args__ = (Index("index_refresh_tokens_user_id", user_id),)
