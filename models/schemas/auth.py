from marshmallow import EXCLUDE, Schema, fields, pre_load, validate

from models.principal_directory import normalize_email


class LoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=normalize_email(data["email"]))
        return data


class RefreshTokenSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(
        required=True, data_key="refreshToken", load_only=True, validate=validate.Length(min=1)
    )


class LoginOutSchema(Schema):
    id = fields.Integer()
    email = fields.String()
    role = fields.String()
    department_id = fields.Integer(allow_none=True)
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")


class TokenPairOutSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
