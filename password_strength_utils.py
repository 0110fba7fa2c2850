# password_strength_utils.py — password policy and strength scoring helpers

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Iterable, List

from zxcvbn import zxcvbn

from config import CONFIG

PASSWORD_MIN_LENGTH = CONFIG.security.password_min_length
PASSWORD_MIN_SCORE = CONFIG.security.password_min_score  # 0-4, 3 or 4 accepted by default

# Precompile for speed/readability
_UPPER = re.compile(r'[A-Z]')
_LOWER = re.compile(r'[a-z]')
_DIGIT = re.compile(r'\d')
# Treat ANY non-alphanumeric as special (covers _ - + = / \ ~ ` ; ' [ ] etc.)
_SPECIAL = re.compile(r'[^A-Za-z0-9]')
_WHITESPACE = re.compile(r'\s')

_COMMON_PATTERNS = [
    re.compile(r'^123'),
    re.compile(r'password', re.I),
    re.compile(r'qwerty', re.I),
    re.compile(r'admin', re.I),
    re.compile(r'letmein', re.I),
    re.compile(r'welcome', re.I),
]

_LABELS = ('Very Weak', 'Weak', 'Fair', 'Strong', 'Very Strong')
_COLORS = ('red', 'red', 'orange', 'yellow', 'green')


@dataclass
class PasswordStrength:
    score: int
    warning: str = ''
    suggestions: List[str] = field(default_factory=list)
    is_valid: bool = False
    crack_time: str = 'instant'


@dataclass
class PasswordPolicyCheck:
    has_min_length: bool
    has_upper_case: bool
    has_lower_case: bool
    has_number: bool
    has_special_char: bool

    @property
    def passed(self) -> bool:
        return all((self.has_min_length, self.has_upper_case, self.has_lower_case,
                    self.has_number, self.has_special_char))


def is_strong_password(password: str, *, min_length: int = PASSWORD_MIN_LENGTH, allow_whitespace: bool = False) -> bool:
    """
    Returns True if password meets strength requirements:
      - At least `min_length` characters (default 8)
      - Contains ≥1 uppercase, ≥1 lowercase, ≥1 digit
      - Contains ≥1 non-alphanumeric character
      - (Optional) Disallow whitespace unless allow_whitespace=True

    Notes:
      - ASCII character classes; non-ASCII letters aren’t counted toward upper/lower checks.
    """
    if not isinstance(password, str):
        return False
    if len(password) < min_length:
        return False
    if not check_password_policy(password, min_length=min_length).passed:
        return False
    if not allow_whitespace and _WHITESPACE.search(password):
        return False
    return True


def check_password_policy(password: str, *, min_length: int = PASSWORD_MIN_LENGTH) -> PasswordPolicyCheck:
    return PasswordPolicyCheck(
        has_min_length=len(password) >= min_length,
        has_upper_case=bool(_UPPER.search(password)),
        has_lower_case=bool(_LOWER.search(password)),
        has_number=bool(_DIGIT.search(password)),
        has_special_char=bool(_SPECIAL.search(password)),
    )


def has_common_patterns(password: str) -> bool:
    """Check if password contains common patterns."""
    return any(p.search(password) for p in _COMMON_PATTERNS)


def validate_password_strength(password: str, user_inputs: Iterable[str] = ()) -> PasswordStrength:
    """
    Score a password 0 (very weak) to 4 (very strong) with zxcvbn.

    `user_inputs` (name, email, workspace name...) are matched as dictionary
    words, so passwords built from them score low. `is_valid` is True when
    the score reaches PASSWORD_MIN_SCORE.
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return PasswordStrength(
            score=0,
            warning=f'Password must be at least {PASSWORD_MIN_LENGTH} characters long',
            suggestions=['Use a longer password with a mix of characters'],
            is_valid=False,
            crack_time='instant',
        )

    result = zxcvbn(password, user_inputs=[str(v) for v in user_inputs if v])
    feedback = result.get('feedback') or {}
    score = int(result['score'])
    return PasswordStrength(
        score=score,
        warning=feedback.get('warning') or '',
        suggestions=list(feedback.get('suggestions') or []),
        is_valid=score >= PASSWORD_MIN_SCORE,
        crack_time=str(result['crack_times_display']['offline_slow_hashing_1e4_per_second']),
    )


def get_password_strength_label(score: int) -> str:
    return _LABELS[score] if 0 <= score < len(_LABELS) else 'Unknown'


def get_password_strength_color(score: int) -> str:
    return _COLORS[score] if 0 <= score < len(_COLORS) else 'gray'

