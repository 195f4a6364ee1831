"""
REST access: the signed request primitive and thin endpoint wrappers.
"""
from .invoker import ApiResult, RawResponse, RestInvoker, SignedRequest

__all__ = ["ApiResult", "RawResponse", "RestInvoker", "SignedRequest"]
