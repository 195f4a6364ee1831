"""
Credentials and request signing.
"""
from .credentials import Credentials
from .signer import login_prehash, prehash, sign, sign_login

__all__ = ["Credentials", "login_prehash", "prehash", "sign", "sign_login"]
