"""Session-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

TOKEN_MAX_LENGTH = 256


class RefreshSchema(Schema):
    """Input payload for exchanging a refresh token."""

    refresh_token = fields.String(
        required=True, validate=validate.Length(min=1, max=TOKEN_MAX_LENGTH)
    )


class RevokeUserTokensSchema(Schema):
    """Input payload for administrative revocation."""

    reason = fields.String(load_default=None, validate=validate.Length(max=200))


class TokenPairSchema(Schema):
    """Response payload with the rotated refresh token and a new access token."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    token_type = fields.String(load_default="Bearer")
    expires_in = fields.Integer(required=True)
    refresh_expires_at = fields.DateTime(required=True)


class LogoutResponseSchema(Schema):
    message = fields.String(required=True)


class RevokeUserTokensResponseSchema(Schema):
    """Response payload for administrative revocation."""

    success = fields.Boolean(required=True)
    message = fields.String(required=True)
    tokens_revoked = fields.Integer(required=True)


class SessionSchema(Schema):
    """Active session projection; never carries token values."""

    session_id = fields.String(required=True)
    created_at = fields.DateTime(required=True)
    expires_at = fields.DateTime(required=True)
    created_by_ip = fields.String(allow_none=True)
