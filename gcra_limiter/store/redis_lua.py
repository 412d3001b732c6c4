"""Redis Lua script and reply constants for the GCRA store.

The compare-and-swap must run as one server-side step; a GET followed by a
SET from the client would let two concurrent decisions on the same key both
succeed.
"""

import hashlib

# Atomic compare-and-swap with millisecond expiry.
# KEYS[1] = bucket key, ARGV[1] = expected old value, ARGV[2] = new value,
# ARGV[3] = ttl in milliseconds
CAS_SCRIPT = """\
local v = redis.call('get', KEYS[1])
if v == false then
  return redis.error_reply("key does not exist")
end
if v ~= ARGV[1] then
  return 0
end
redis.call('psetex', KEYS[1], ARGV[3], ARGV[2])
return 1
"""

# hashlib.sha1(CAS_SCRIPT.encode()).hexdigest()
CAS_SHA = "925e92682083f854e28ca3344eeb13820015453a"

# Error replies. redis-py strips the NOSCRIPT / READONLY codes and raises
# NoScriptError / ReadOnlyError, so only the script's own reply is matched
# by message.
CAS_SCRIPT_MISSING_KEY_RESPONSE = "key does not exist"
SCRIPT_NOT_IN_CACHE_RESPONSE = "NOSCRIPT No matching script. Please use EVAL."
CONNECTED_TO_READONLY_RESPONSE = "READONLY You can't write against a read only replica."


def cas_script_digest() -> str:
    """Compute the SHA1 digest Redis uses to cache CAS_SCRIPT."""
    return hashlib.sha1(CAS_SCRIPT.encode("utf-8")).hexdigest()


def verify_cas_script() -> None:
    """Fail fast if CAS_SCRIPT was edited without updating CAS_SHA."""
    actual = cas_script_digest()
    if actual != CAS_SHA:
        raise RuntimeError(
            f"CAS_SCRIPT was updated without adjusting CAS_SHA! "
            f"Please change CAS_SHA to '{actual}'"
        )
