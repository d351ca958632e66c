# firebase_client.py
import logging
import os
import sys

import firebase_admin
import requests
from firebase_admin import credentials, firestore

from config import get_settings
from errors import AuthError, BackendUnavailable

logger = logging.getLogger(__name__)

# -------------------------------------------------------
# REST AUTH ENDPOINTS (Signup/Login/Refresh)
# -------------------------------------------------------
IDENTITY_TOOLKIT = "https://identitytoolkit.googleapis.com/v1"
FIREBASE_REST_SIGNUP = IDENTITY_TOOLKIT + "/accounts:signUp"
FIREBASE_REST_SIGNIN = IDENTITY_TOOLKIT + "/accounts:signInWithPassword"
FIREBASE_REST_REFRESH = "https://securetoken.googleapis.com/v1/token"


# -------------------------------------------------------
# RESOURCE PATH FIX (supports PyInstaller .exe)
# -------------------------------------------------------
def resource_path(filename):
    """
    Get absolute path to a bundled resource.
    Works for development (.py) AND when compiled into .exe.
    """
    if os.path.isabs(filename):
        return filename
    if hasattr(sys, "_MEIPASS"):
        # PyInstaller temp folder
        return os.path.join(sys._MEIPASS, filename)
    return os.path.join(os.path.abspath("."), filename)


# -------------------------------------------------------
# FIREBASE ADMIN INITIALIZATION (FireStore)
# -------------------------------------------------------
def init_app():
    if not firebase_admin._apps:
        path = resource_path(get_settings().firebase_credentials)
        logger.info("Initialising Firebase Admin with %s", path)
        cred = credentials.Certificate(path)
        firebase_admin.initialize_app(cred)
    return firebase_admin.get_app()


def get_db():
    init_app()
    return firestore.client()


# -------------------------------------------------------
# ERROR MAPPING
# -------------------------------------------------------
LOGIN_MESSAGES = {
    "EMAIL_NOT_FOUND": "Invalid email or password!",
    "INVALID_PASSWORD": "Invalid email or password!",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password!",
    "USER_DISABLED": "This account has been disabled. Contact support.",
    "INVALID_EMAIL": "Invalid email address format.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
}

SIGNUP_MESSAGES = {
    "EMAIL_EXISTS": "Email already registered!",
    "INVALID_EMAIL": "Invalid email address format.",
    "OPERATION_NOT_ALLOWED": "Password sign-in is disabled for this project.",
    "WEAK_PASSWORD": "Password should be at least 6 characters!",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Try again later.",
}

REFRESH_MESSAGES = {
    "TOKEN_EXPIRED": "Your session has expired. Please login again.",
    "USER_DISABLED": "This account has been disabled. Contact support.",
    "USER_NOT_FOUND": "Your session has expired. Please login again.",
    "INVALID_REFRESH_TOKEN": "Your session has expired. Please login again.",
}


def error_code(exc: requests.exceptions.HTTPError) -> str:
    """
    Pull the Firebase error code out of a REST error body.
    Codes may carry a detail suffix, e.g. "WEAK_PASSWORD : Password should be ...".
    """
    if exc.response is None:
        return ""
    try:
        data = exc.response.json()
        code = data.get("error", {}).get("message", "")
    except ValueError:
        return ""
    return code.split(" : ")[0].strip().upper()


def map_firebase_error(exc: requests.exceptions.HTTPError, context: str) -> str:
    """
    Convert Firebase HTTP errors into user-friendly messages.
    context: "login", "signup" or "refresh"
    """
    code = error_code(exc)
    if not code:
        return "Something went wrong while contacting the server. Please try again."

    if context == "login":
        mapping = LOGIN_MESSAGES
    elif context == "signup":
        mapping = SIGNUP_MESSAGES
    else:
        mapping = REFRESH_MESSAGES

    return mapping.get(code, "Server error: " + code.replace("_", " ").title())


def _post(url: str, context: str, **kwargs) -> dict:
    settings = get_settings()
    if not settings.firebase_api_key:
        raise BackendUnavailable("FIREBASE_API_KEY is not configured.")
    try:
        resp = requests.post(
            url,
            params={"key": settings.firebase_api_key},
            timeout=settings.http_timeout,
            **kwargs,
        )
        resp.raise_for_status()
        return resp.json()
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else 0
        if status >= 500:
            logger.warning("Auth server error (%s) during %s", status, context)
            raise BackendUnavailable() from e
        raise AuthError(map_firebase_error(e, context), code=error_code(e)) from e
    except requests.exceptions.RequestException as e:
        logger.warning("Auth request failed during %s: %s", context, e)
        raise BackendUnavailable() from e


# -------------------------------------------------------
# AUTH HELPERS
# -------------------------------------------------------
def signup_with_email_password(email: str, password: str) -> dict:
    payload = {
        "email": email,
        "password": password,
        "returnSecureToken": True,
    }
    return _post(FIREBASE_REST_SIGNUP, "signup", json=payload)


def signin_with_email_password(email: str, password: str) -> dict:
    payload = {
        "email": email,
        "password": password,
        "returnSecureToken": True,
    }
    return _post(FIREBASE_REST_SIGNIN, "login", json=payload)


def refresh_id_token(refresh_token: str) -> dict:
    """
    Exchange a refresh token for a fresh id token.
    The secure token API answers in snake_case; normalise to the sign-in shape.
    """
    res = _post(
        FIREBASE_REST_REFRESH,
        "refresh",
        data={"grant_type": "refresh_token", "refresh_token": refresh_token},
    )
    return {
        "localId": res.get("user_id"),
        "idToken": res.get("id_token"),
        "refreshToken": res.get("refresh_token"),
        "expiresIn": res.get("expires_in"),
    }
