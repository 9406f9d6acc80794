"""
JSON Web Key models.
"""

from .models import JWK, JWKMarshalOptions, JWKSMarshal, JWKValidateOptions

__all__ = [
    "JWK",
    "JWKMarshalOptions",
    "JWKSMarshal",
    "JWKValidateOptions",
]
