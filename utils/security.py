import re
import shlex

CHAIN_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
PRIVATE_KEY_BLOCK = re.compile(
    r"-----BEGIN [A-Z0-9 ]*PRIVATE KEY-----.*?(?:-----END [A-Z0-9 ]*PRIVATE KEY-----|\Z)",
    re.DOTALL,
)
REDACTED = "[REDACTED PRIVATE KEY]"
MAX_LOG_TEXT = 16000


# 체인 이름 정책 검사 (소문자/숫자/하이픈, 3-30자, 하이픈으로 시작/끝 불가)
def validate_chain_name(chain_name: str) -> None:
    if not chain_name:
        raise ValueError("Chain name is required")
    if not CHAIN_NAME_PATTERN.match(chain_name):
        raise ValueError("Chain name can only contain lowercase letters, numbers, and hyphens")
    if len(chain_name) < 3 or len(chain_name) > 30:
        raise ValueError("Chain name must be 3-30 characters")
    if chain_name.startswith("-") or chain_name.endswith("-"):
        raise ValueError("Chain name cannot start or end with a hyphen")


def safe_chain_name(chain_name: str) -> str:
    """Return the chain name quoted for a shell command line.

    The allow-list is checked again here, so a name that slipped past request
    validation can never reach a command string.
    """
    validate_chain_name(chain_name)
    return shlex.quote(chain_name)


def validate_private_key(private_key: str) -> None:
    if not private_key:
        raise ValueError("SSH private key is required")
    if "BEGIN" not in private_key or "PRIVATE KEY" not in private_key:
        raise ValueError("Invalid SSH private key format")


def redact_secrets(text):
    if not text:
        return text
    return PRIVATE_KEY_BLOCK.sub(REDACTED, text)


def clip(text, limit: int = MAX_LOG_TEXT):
    """Redact then cut text to the last ``limit`` characters."""
    text = redact_secrets(text)
    if text and len(text) > limit:
        return "...(truncated)...\n" + text[-limit:]
    return text
