__all__ = [
    "create_access_token",
    "get_current_user",
    "oauth2_scheme",
    "is_email_enabled",
    "send_email",
    "utcnow",
    "to_naive_utc",
]


def __getattr__(name):
    if name in {
        "create_access_token",
        "get_current_user",
        "oauth2_scheme",
    }:
        from . import security as _security
        return getattr(_security, name)
    if name in {"is_email_enabled", "send_email"}:
        from . import email as _email
        return getattr(_email, name)
    if name in {"utcnow", "to_naive_utc"}:
        from . import timeutil as _timeutil
        return getattr(_timeutil, name)
    raise AttributeError(f"module 'swaphub.utils' has no attribute '{name}'")
